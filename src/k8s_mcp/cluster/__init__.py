# ABOUTME: Cluster core package: sessions, remote call policy, and resource operations
# ABOUTME: Everything here is independent of the MCP tool layer

"""
Kubernetes cluster core.

    kubeconfig.py   parse kubeconfigs / in-cluster config into client configurations
    clients.py      typed and generic capability sets over the kubernetes client
    retry.py        deadlines and the bounded retry loop for every remote call
    registry.py     named cluster sessions, current context and namespace
    resources.py    get/list/create/delete against the current session
    deployment.py   Deployment parameter validation and document builder
    logs.py         bounded pod log retrieval
"""
