"""
cashora.db

Package base de données : connexion, session et helpers d’accès DB.

Contenu :
- base    : classe Base ORM commune.
- session : engine async, factory de sessions et dépendance FastAPI (Depends(get_db)).
- migrations : Alembic (backend/alembic) via DATABASE_URL_SYNC.
"""
