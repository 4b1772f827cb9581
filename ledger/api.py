from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from api.deps import get_admin, get_identity, get_services, require_self_or_admin
from core.collaborators import Identity
from core.container import Services

from .models import Account, LedgerHistoryResponse, ReplayResult, UserBalance

router = APIRouter(prefix="/users", tags=["Ledger"])


@router.get("/{user_id}/balance", response_model=UserBalance)
def get_user_balance(
    user_id: UUID,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> UserBalance:
    require_self_or_admin(identity, user_id)
    return services.ledger.get_balance(user_id)


@router.get("/{user_id}/ledger", response_model=LedgerHistoryResponse)
def get_user_ledger(
    user_id: UUID,
    limit: int = 50,
    offset: int = 0,
    account: Optional[Account] = None,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> LedgerHistoryResponse:
    require_self_or_admin(identity, user_id)
    return services.ledger.get_ledger_history(user_id, limit, offset, account)


@router.get("/{user_id}/ledger/replay", response_model=ReplayResult)
def replay_user_ledger(
    user_id: UUID,
    account: Account = Account.BALANCE,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> ReplayResult:
    return services.ledger.replay_balance(user_id, account)
