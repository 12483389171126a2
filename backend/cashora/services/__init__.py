"""
cashora.services

Logique applicative (use-cases) indépendante des endpoints HTTP.

Principe :
- cashora.api = transport HTTP (routes, validation, dépendances)
- cashora.services = orchestration métier (transactions DB atomiques, règles, effets de bord)
- cashora.models / cashora.schemas = persistance et contrats
"""
