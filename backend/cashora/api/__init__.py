"""
cashora.api

Routes FastAPI regroupées par domaine :
- auth (inscription, connexion, 2FA, récupération de mot de passe)
- espace utilisateur (/api/user/...)
- espace admin (/api/admin/...)
- temps réel (/ws/notifications) et opérationnel (/health, /system/status)
"""
