"""
scripts

Package utilitaire pour les scripts d’exploitation Cashora.

Rôle (fonctionnel) :
- Contient des scripts exécutables (CLI) liés au projet :
  - seed_demo.py    : données de démonstration (banques, admin, utilisateurs, dépôt initial)
  - create_admin.py : création / promotion d’un compte administrateur

Note :
- Les scripts ne contiennent pas de logique métier “centrale” :
  ils réutilisent les modèles et helpers de `cashora/` (ORM, hash des mots de passe, settings).
"""
