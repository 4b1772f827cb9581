from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_identity, get_services, require_self_or_admin
from core.collaborators import Identity
from core.container import Services

from .models import LeaderboardEntry, Referral, ReferralStats, RegisterReferralRequest

router = APIRouter(prefix="/referrals", tags=["Referrals"])


@router.post("", response_model=Optional[Referral])
def register_referral(
    request: RegisterReferralRequest,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> Optional[Referral]:
    require_self_or_admin(identity, request.referred_user_id)
    return services.referrals.register_edge(request.referrer_code, request.referred_user_id)


@router.get("/stats/{referral_code}", response_model=ReferralStats)
def get_referral_stats(referral_code: str, services: Services = Depends(get_services)) -> ReferralStats:
    return services.referrals.get_stats(referral_code)


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
def get_leaderboard(
    limit: Optional[int] = Query(None, ge=1),
    services: Services = Depends(get_services),
) -> list[LeaderboardEntry]:
    return services.referrals.leaderboard(limit or services.settings.leaderboard_limit)


@router.get("/policy")
def get_policy(services: Services = Depends(get_services)) -> dict:
    return services.referrals.policy.to_dict()
