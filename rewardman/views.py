"""
Loyalty JSON endpoints.

Read endpoints back the membership/points screen; POST redeem spends
points; POST earn is the ingestion point for upstream producers.
Authentication is left to the host project (wrap the URLs).
"""

from __future__ import annotations

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from rewardman.exceptions import (
    AccountNotFound,
    ConcurrentModification,
    InsufficientBalance,
    InvalidCursor,
    LoyaltyError,
    RewardUnavailable,
)
from rewardman.service import LoyaltyService

logger = logging.getLogger("rewardman.views")


def _error(exc: LoyaltyError, status: int) -> JsonResponse:
    return JsonResponse(
        {"error": exc.code, "message": exc.message, "data": exc.data},
        status=status,
    )


def _parse_body(request) -> dict | None:
    try:
        data = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


class SummaryView(View):
    def get(self, request, account_code):
        return JsonResponse(LoyaltyService.get_summary(account_code).as_dict())


class HistoryView(View):
    def get(self, request, account_code):
        page_size = request.GET.get("page_size")
        try:
            page_size = int(page_size) if page_size else None
        except ValueError:
            return JsonResponse({"error": "INVALID_PAGE_SIZE"}, status=400)

        try:
            page = LoyaltyService.get_history(
                account_code,
                cursor=request.GET.get("cursor") or None,
                page_size=page_size,
            )
        except InvalidCursor as exc:
            return _error(exc, 400)
        return JsonResponse(page.as_dict())


class RewardsView(View):
    def get(self, request, account_code):
        rewards = LoyaltyService.list_redeemable_rewards(account_code)
        return JsonResponse({"rewards": [r.as_dict() for r in rewards]})


class TiersView(View):
    def get(self, request):
        return JsonResponse({"tiers": [t.as_dict() for t in LoyaltyService.tiers()]})


@method_decorator(csrf_exempt, name="dispatch")
class RedeemView(View):
    """
    POST {"reward_id": "...", "idempotency_key": "..."}

    200 on success (also for a replayed idempotency key), 409 when the
    balance is insufficient, 404/410 when the reward is missing or
    unavailable, 404 for a deactivated account, 503 when concurrent
    retries were exhausted.
    """

    def post(self, request, account_code):
        data = _parse_body(request)
        if data is None:
            return JsonResponse({"error": "Invalid JSON"}, status=400)

        reward_id = data.get("reward_id")
        if not reward_id:
            return JsonResponse({"error": "reward_id is required"}, status=400)

        try:
            result = LoyaltyService.redeem(
                account_code,
                str(reward_id),
                idempotency_key=str(data.get("idempotency_key") or ""),
            )
        except InsufficientBalance as exc:
            return _error(exc, 409)
        except AccountNotFound as exc:
            return _error(exc, 404)
        except RewardUnavailable as exc:
            return _error(exc, 404 if exc.data.get("reason") == "not_found" else 410)
        except ConcurrentModification as exc:
            logger.warning("Redeem for %s: retries exhausted", account_code)
            return _error(exc, 503)

        return JsonResponse(result.as_dict())


@method_decorator(csrf_exempt, name="dispatch")
class EarnEventView(View):
    """
    POST {"account": "...", "source_type": "...", "source_id": "...",
          "points": 150, "idempotency_key": "..."}

    201 when recorded, 200 when the source was already recorded.
    """

    def post(self, request):
        data = _parse_body(request)
        if data is None:
            return JsonResponse({"error": "Invalid JSON"}, status=400)

        account_code = data.get("account")
        if not account_code:
            return JsonResponse({"error": "account is required"}, status=400)

        try:
            entry, created = LoyaltyService.emit_earn_event(
                str(account_code),
                str(data.get("source_type") or ""),
                str(data.get("source_id") or ""),
                data.get("points"),
                str(data.get("idempotency_key") or ""),
            )
        except AccountNotFound as exc:
            return _error(exc, 404)
        except LoyaltyError as exc:
            return _error(exc, 400)

        return JsonResponse(
            {
                "status": "created" if created else "duplicate",
                "entry_id": str(entry.uuid),
                "points": entry.delta,
                "balance": LoyaltyService.get_balance(str(account_code)),
            },
            status=201 if created else 200,
        )
