"""
cashora

Package racine du backend Cashora (gestion de comptes : dépôts, retraits, transferts, administration).

Organisation :
- cashora.api      : routes FastAPI (auth, espace utilisateur, espace admin, WebSocket)
- cashora.core     : briques transverses (settings, erreurs, logs, sécurité, rate-limit, temps réel…)
- cashora.db       : base SQLAlchemy + session async
- cashora.models   : modèles ORM (profils, transactions, demandes, banques, notifications…)
- cashora.schemas  : schémas Pydantic (entrées/sorties API)
- cashora.services : logique métier (ledger, limites, auth, notifications, audit, dashboard…)
"""
