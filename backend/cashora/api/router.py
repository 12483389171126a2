from fastapi import APIRouter

from cashora.api.account import router as account_router
from cashora.api.admin_banks import router as admin_banks_router
from cashora.api.admin_dashboard import router as admin_dashboard_router
from cashora.api.admin_logs import router as admin_logs_router
from cashora.api.admin_requests import router as admin_requests_router
from cashora.api.admin_settings import router as admin_settings_router
from cashora.api.admin_support import router as admin_support_router
from cashora.api.admin_transactions import router as admin_transactions_router
from cashora.api.admin_users import router as admin_users_router
from cashora.api.admin_verifications import router as admin_verifications_router
from cashora.api.auth import router as auth_router
from cashora.api.bank_accounts import router as bank_accounts_router
from cashora.api.banks import router as banks_router
from cashora.api.deposits import router as deposits_router
from cashora.api.health import router as health_router
from cashora.api.notifications import router as notifications_router
from cashora.api.profile import router as profile_router
from cashora.api.search import router as search_router
from cashora.api.status import router as status_router
from cashora.api.support import router as support_router
from cashora.api.transfers import router as transfers_router
from cashora.api.user_dashboard import router as user_dashboard_router
from cashora.api.user_transactions import router as user_transactions_router
from cashora.api.withdrawals import router as withdrawals_router

"""
Router principal de l’API.

Rôle (fonctionnel) :
- Regroupe les routeurs par domaine (auth, espace utilisateur, espace admin, opérationnel).
- Sert de point d’entrée unique pour l’inclusion dans l’application FastAPI.
"""

api_router = APIRouter()

# Opérationnel
api_router.include_router(health_router, tags=["health"])
api_router.include_router(status_router)

# Public / auth
api_router.include_router(auth_router)
api_router.include_router(banks_router)

# Espace utilisateur
api_router.include_router(user_dashboard_router)
api_router.include_router(profile_router)
api_router.include_router(deposits_router)
api_router.include_router(withdrawals_router)
api_router.include_router(transfers_router)
api_router.include_router(bank_accounts_router)
api_router.include_router(notifications_router)
api_router.include_router(support_router)
api_router.include_router(user_transactions_router)
api_router.include_router(account_router)

# Espace admin
api_router.include_router(search_router)
api_router.include_router(admin_dashboard_router)
api_router.include_router(admin_users_router)
api_router.include_router(admin_verifications_router)
api_router.include_router(admin_requests_router)
api_router.include_router(admin_banks_router)
api_router.include_router(admin_transactions_router)
api_router.include_router(admin_logs_router)
api_router.include_router(admin_support_router)
api_router.include_router(admin_settings_router)
