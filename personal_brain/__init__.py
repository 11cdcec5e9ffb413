# Personal Brain MCP Server
#
# Modular package structure:
# - config.py: Settings loaded from BRAIN_* environment variables
# - logging.py: structlog configuration (stderr)
# - utils.py: Regex patterns, helpers and shared exceptions
# - models.py: Pydantic models for results, notes, profiles and conversations
# - messaging/: Message models, parameter schemas and the ContextMediator
# - sources/: External source adapters (Wikipedia, NewsAPI)
# - cache.py: SearchCache for aggregated search results
# - aggregator.py: Concurrent fan-out search across enabled sources
# - embeddings.py: Embedding service for semantic re-ranking
# - contexts/: Notes, profile, conversation and external sources contexts
# - brain.py: Composition root wiring contexts to the mediator
# - tools.py: MCP tool and resource handlers, create_server()
# - importers.py: Markdown note and YAML profile importers
# - main.py: Entry point and server initialization
