"""Session endpoints.

- POST /auth/logout: clear session cookie
- GET /auth/me: current account info
"""

from fastapi import APIRouter, Response

from employme.api.deps import CurrentAccount, DbSession, Providers
from employme.core.auth import clear_session_cookie
from employme.core.responses import DataResponse, MessageData
from employme.repositories.profile_repository import ProfileRepository
from employme.services.identity_resolver import IdentityResolver
from employme.services.identity_types import AccountSummary

router = APIRouter()


@router.post("/logout")
async def logout(response: Response) -> DataResponse[MessageData]:
    """Clear the session cookie.

    No auth required: clears cookie regardless.
    """
    clear_session_cookie(response)
    return DataResponse(data=MessageData(message="Signed out"))


@router.get("/me")
async def get_me(
    account: CurrentAccount,
    db: DbSession,
    providers: Providers,
) -> DataResponse[dict]:
    """Return the authenticated account.

    Returns 401 if no valid session.

    Response adds to the account summary:
    - profile_id / has_profile: role profile reference (None before onboarding)
    - has_password: false for federated-only accounts
    - linked_providers: provider names, oldest link first
    """
    profile_id = await ProfileRepository.get_profile_id(db, account.id, account.role)
    linked = await IdentityResolver(db, providers).list_linked_providers(account.id)

    data = AccountSummary.from_account(account).to_dict()
    data.update(
        {
            "profile_id": str(profile_id) if profile_id else None,
            "has_profile": profile_id is not None,
            "has_password": account.password_hash is not None,
            "linked_providers": linked,
        }
    )
    return DataResponse(data=data)
