"""
cashora.core

Briques transverses, indépendantes d’un domaine métier précis :

- settings    : configuration (variables d’environnement, seuils, URLs).
- errors      : format d’erreur uniforme + AppHTTPException + messages standard.
- logging     : logs JSON enrichis du request_id.
- request_id  : identifiant de corrélation (ContextVar).
- rate_limit  : limitation de débit (mémoire ou Redis).
- realtime    : manager WebSocket (push des notifications par utilisateur).
- security    : hash des mots de passe + JWT.
- totp        : 2FA (secret, URI otpauth, QR code).
- device      : parsing user-agent, géolocalisation IP, distance.
- validation  : règles de validation partagées (montants, comptes, noms…).
- storage     : stockage de fichiers (bucket avatars).
"""
