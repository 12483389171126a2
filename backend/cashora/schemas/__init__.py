"""
cashora.schemas

Package des schémas API (Pydantic).

Rôle (fonctionnel) :
- Définit les modèles d’entrée/sortie utilisés par l’API (request/response).
- Sépare clairement :
  - les modèles ORM (cashora.models) = persistance DB
  - les schémas Pydantic (cashora.schemas) = contrat HTTP / validation
"""
