# ABOUTME: Kubernetes MCP Server package initialization
# ABOUTME: Exposes version information for the package

"""
Kubernetes MCP Server - cluster sessions and resource operations via Model Context Protocol.

=============================================================================
WHAT IS THIS PACKAGE?
=============================================================================

An MCP server that lets an AI assistant work with one or more Kubernetes
clusters: register clusters from kubeconfig files, switch between them, and
get/list/create/delete resources, read pod logs and create deployments.

An MCP Server provides:
- TOOLS: Actions the AI can take (e.g., "list_pods", "stream_logs")
- RESOURCES: Data the AI can read (e.g., "k8s://clusters")

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

k8s_mcp/
├── __init__.py          <- Package entry point
├── config.py            <- Configuration management (env vars, settings)
├── errors.py            <- Error taxonomy and API error translation
├── server.py            <- MCP server with all tools defined
├── cluster/
│   ├── kubeconfig.py    <- Kubeconfig / in-cluster config loading
│   ├── clients.py       <- Typed and generic kubernetes client adapters
│   ├── retry.py         <- Deadlines and bounded retries (tenacity)
│   ├── registry.py      <- Named cluster sessions, current context/namespace
│   ├── resources.py     <- Resource operations against the current session
│   ├── deployment.py    <- Deployment parameter validation and builder
│   └── logs.py          <- Bounded pod log retrieval
└── utils/
    └── logging.py       <- Structured logging with audit trails
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
