"""Pleesher API client: goals, achievements, rewards and notifications.

Results are cached in the client's Storage chain, relative to the user
they were fetched for (or globally when no user is given). Operations that
change server state invalidate the affected cache entries:

- award / deny / claim: the goal entry of that user (lazy refresh)
- check_achievements: all of the user's goals beforehand (eager), then
  notifications and the user entry when something was awarded
- unlock_reward: the user entry and the reward entry
- mark_notifications_read: all of the user's notifications
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any

import httpx

from pleesher.core.config import Settings, get_settings
from pleesher.core.constants import (
    CACHE_KEY_ACCESS_TOKEN,
    CACHE_KEY_GOAL,
    CACHE_KEY_NOTIFICATION,
    CACHE_KEY_REWARD,
    CACHE_KEY_USER,
)
from pleesher.infrastructure.cache.factory import StorageFactory
from pleesher.infrastructure.cache.storage_protocol import Storage
from pleesher.infrastructure.external.oauth2_client import DEFAULT_ROOT_URL, OAuth2Client
from pleesher.shared.telemetry.logging import get_logger
from pleesher.shared.utils.datetime import is_expired, utc_timestamp

logger = get_logger(__name__)

# checker(goal, user_id) -> achieved, or (current, target)
GoalChecker = Callable[[dict[str, Any], int], Any]
AchievementsAwardedAction = Callable[[list[int]], Any]

PARTICIPATION_ACHIEVED = "achieved"


def _is_progress(result: Any) -> bool:
    return isinstance(result, (list, tuple)) and len(result) == 2


def _participation_achieved(goal: dict[str, Any]) -> bool:
    participation = goal.get("participation")
    return isinstance(participation, dict) and participation.get("status") == PARTICIPATION_ACHIEVED


def _as_list(values: Any) -> list[Any]:
    if isinstance(values, (list, tuple)):
        return list(values)
    return [values]


class PleesherClient(OAuth2Client):
    """Client for the Pleesher achievements API.

    Goal checkers bound with bind_goal_checker() decide locally whether a
    user has reached a goal; check_achievements() awards every goal whose
    checker says so.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_version: str = "1.0",
        root_url: str = DEFAULT_ROOT_URL,
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
        cache_storage: Storage | None = None,
    ) -> None:
        super().__init__(
            client_id,
            client_secret,
            api_version=api_version,
            root_url=root_url,
            http_client=http_client,
            timeout=timeout,
            cache_storage=cache_storage,
        )
        self._goal_checkers: dict[str, GoalChecker] = {}
        self._achievements_awarded_actions: list[AchievementsAwardedAction] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        http_client: httpx.Client | None = None,
    ) -> PleesherClient:
        """Build a client whose credentials and cache chain come from settings."""
        s = settings or get_settings()
        return cls(
            s.client_id,
            s.client_secret.get_secret_value(),
            api_version=s.api_version,
            root_url=s.api_root_url,
            http_client=http_client,
            timeout=s.http_timeout_seconds,
            cache_storage=StorageFactory.create_storage(s),
        )

    # ---- Goal checkers ----

    def bind_goal_checker(self, goal_code: str, checker: GoalChecker) -> None:
        """Bind a goal (by code) to the function that checks it for a user."""
        self._goal_checkers[goal_code] = checker

    def on_achievements_awarded(self, action: AchievementsAwardedAction) -> None:
        """Register an action called with the goal ids awarded by check_achievements()."""
        self._achievements_awarded_actions.append(action)

    def check_achievements(
        self, user_id: int, goal_codes: Iterable[str] | None = None
    ) -> list[int]:
        """Run the bound checkers for a user and award the goals they validate.

        Args:
            user_id: User to check.
            goal_codes: Restrict the check to these goal codes.

        Returns:
            Ids of the goals awarded.
        """
        logger.info("Checking achievements for user %s", user_id)
        codes = set(goal_codes) if goal_codes is not None else None

        self.cache_storage.refresh_all(user_id, CACHE_KEY_GOAL)
        goal_ids: list[int] = []
        for goal in self.get_goals(user_id=user_id):
            if codes is not None and goal.get("code") not in codes:
                continue
            if _participation_achieved(goal) or goal.get("code") not in self._goal_checkers:
                continue
            # get_goals() already ran the checker
            if goal.get("achieved"):
                goal_ids.append(goal["id"])

        if goal_ids:
            self.award(user_id, goal_ids)
            self.cache_storage.refresh_all(user_id, CACHE_KEY_NOTIFICATION)
            self.cache_storage.refresh(user_id, CACHE_KEY_USER, user_id)
            self._fire_achievements_awarded(goal_ids)
        return goal_ids

    def compute_goal_progress(self, goal: dict[str, Any], user_id: int) -> dict[str, Any]:
        """Return goal with 'achieved' (and 'progress') set for user_id.

        A goal the checker validates but the server does not yet record as
        achieved is awarded, then reloaded.
        """
        goal = self._apply_goal_checker(goal, user_id)
        if (
            goal["achieved"]
            and goal.get("code") in self._goal_checkers
            and not _participation_achieved(goal)
        ):
            self.award(user_id, [goal["id"]])
            goal = self._apply_goal_checker(self._load_goal(goal["id"], user_id), user_id)
        return goal

    def _apply_goal_checker(self, goal: dict[str, Any], user_id: int) -> dict[str, Any]:
        goal = dict(goal)
        checker = self._goal_checkers.get(goal.get("code"))
        if checker is None:
            goal["achieved"] = _participation_achieved(goal)
            return goal
        result = checker(goal, user_id)
        if _is_progress(result):
            current, target = result
            goal["progress"] = {"current": current, "target": target}
            goal["achieved"] = current >= target
        else:
            goal["achieved"] = bool(result)
        return goal

    def _fire_achievements_awarded(self, goal_ids: list[int]) -> None:
        for action in self._achievements_awarded_actions:
            action(goal_ids)

    # ---- Users ----

    def get_user(self, user_id: int) -> dict[str, Any]:
        """Return the user's profile as seen by Pleesher."""
        user = self.cache_storage.load(user_id, CACHE_KEY_USER, user_id)
        if user is None:
            user = self.call("GET", "user", {"user_id": int(user_id)})
            self.cache_storage.save(user_id, CACHE_KEY_USER, user_id, user)
        return user

    # ---- Goals ----

    def get_goals(self, user_id: int | None = None) -> list[dict[str, Any]]:
        """Return all goals.

        With user_id, each goal carries the user's participation and the
        result of its bound checker ('achieved', 'progress'). Nothing is
        awarded here; check_achievements() does that.
        """
        cached = self.cache_storage.load_all(user_id, CACHE_KEY_GOAL)
        if cached is not None:
            return list(cached.values())

        data = {"user_id": int(user_id)} if user_id is not None else {}
        goals = self.call("GET", "goals", data)
        if user_id is not None:
            goals = [self._apply_goal_checker(goal, user_id) for goal in goals]
        self.cache_storage.save_all(user_id, CACHE_KEY_GOAL, {goal["id"]: goal for goal in goals})
        return goals

    def get_goal(self, goal_id_or_code: int | str, user_id: int | None = None) -> dict[str, Any]:
        """Return one goal by id or code, with progress computed when user_id is given."""
        goal = self._load_goal(goal_id_or_code, user_id)
        if user_id is not None:
            goal = self.compute_goal_progress(goal, user_id)
        return goal

    def _load_goal(self, goal_id_or_code: int | str, user_id: int | None) -> dict[str, Any]:
        goal = None
        # Goals are cached by id; a code always goes to the API.
        if isinstance(goal_id_or_code, int):
            goal = self.cache_storage.load(user_id, CACHE_KEY_GOAL, goal_id_or_code)
        if goal is None:
            data: dict[str, Any] = {"goal_id": goal_id_or_code}
            if user_id is not None:
                data["user_id"] = int(user_id)
            goal = self.call("GET", "goal", data)
            self.cache_storage.save(user_id, CACHE_KEY_GOAL, goal["id"], goal)
        return goal

    def _goal_id(self, goal_id_or_code: int | str) -> int:
        if isinstance(goal_id_or_code, int):
            return goal_id_or_code
        return self.get_goal(goal_id_or_code)["id"]

    def get_achievements(self, user_id: int) -> list[dict[str, Any]]:
        """Return the goals the user has achieved."""
        return [goal for goal in self.get_goals(user_id=user_id) if goal.get("achieved")]

    def has_achieved_goal(self, user_id: int, goal_id_or_code: int | str) -> bool:
        return bool(self.get_goal(goal_id_or_code, user_id=user_id).get("achieved"))

    def award(self, user_id: int, goal_ids_or_codes: int | str | Sequence[int | str]) -> Any:
        """Award goals to a user and refresh the user's cached goal entries."""
        goals = _as_list(goal_ids_or_codes)
        result = self.call("POST", "award", {"user_id": user_id, "goal_ids": goals})
        for goal_id_or_code in goals:
            self.cache_storage.refresh(user_id, CACHE_KEY_GOAL, self._goal_id(goal_id_or_code))
        return result

    def deny_achievement(self, user_id: int, goal_id_or_code: int | str) -> Any:
        result = self.call("POST", "deny", {"user_id": user_id, "goal_id": goal_id_or_code})
        self.cache_storage.refresh(user_id, CACHE_KEY_GOAL, self._goal_id(goal_id_or_code))
        return result

    def claim_achievement(
        self, user_id: int, goal_id_or_code: int | str, message: str | None = None
    ) -> Any:
        """Submit a user's claim that they achieved a goal (reviewed server side)."""
        result = self.call(
            "POST",
            "claim",
            {"user_id": user_id, "goal_id": goal_id_or_code, "message": message},
        )
        self.cache_storage.refresh(user_id, CACHE_KEY_GOAL, self._goal_id(goal_id_or_code))
        return result

    def get_claims(self, user_id: int | None = None) -> Any:
        """Return pending claims (not cached)."""
        return self.call("GET", "claims", {"user_id": user_id})

    def confirm_achievement(self, user_id: int, goal_id: int) -> Any:
        """Confirm a claimed achievement."""
        return self.call("POST", "award", {"user_id": user_id, "goal_ids": [goal_id]})

    # ---- Rewards ----

    def get_rewards(self, user_id: int | None = None) -> list[dict[str, Any]]:
        """Return all rewards, as seen by user_id when given."""
        cached = self.cache_storage.load_all(user_id, CACHE_KEY_REWARD)
        if cached is not None:
            return list(cached.values())

        data = {"user_id": int(user_id)} if user_id is not None else {}
        rewards = self.call("GET", "rewards", data)
        self.cache_storage.save_all(
            user_id, CACHE_KEY_REWARD, {reward["id"]: reward for reward in rewards}
        )
        return rewards

    def get_reward(self, reward_id: int, user_id: int | None = None) -> dict[str, Any]:
        reward = self.cache_storage.load(user_id, CACHE_KEY_REWARD, reward_id)
        if reward is None:
            data: dict[str, Any] = {"reward_id": reward_id}
            if user_id is not None:
                data["user_id"] = int(user_id)
            reward = self.call("GET", "reward", data)
            self.cache_storage.save(user_id, CACHE_KEY_REWARD, reward["id"], reward)
        return reward

    def unlock_reward(self, reward_id: int, user_id: int) -> bool:
        """Unlock a reward for a user. Returns True when the API answers 'ok'."""
        result = self.call("POST", "unlock_reward", {"reward_id": reward_id, "user_id": user_id})
        self.cache_storage.refresh(user_id, CACHE_KEY_USER, user_id)
        self.cache_storage.refresh(user_id, CACHE_KEY_REWARD, reward_id)
        return result == "ok"

    def has_unlocked_reward(self, user_id: int, reward_id: int) -> bool:
        return bool(self.get_reward(reward_id, user_id=user_id).get("unlocked"))

    # ---- Notifications ----

    def get_notifications(self, user_id: int) -> list[dict[str, Any]]:
        """Return the user's notifications."""
        cached = self.cache_storage.load_all(user_id, CACHE_KEY_NOTIFICATION)
        if cached is not None:
            return list(cached.values())

        notifications = self.call("GET", "notifications", {"user_id": user_id})
        self.cache_storage.save_all(
            user_id,
            CACHE_KEY_NOTIFICATION,
            {notification["id"]: notification for notification in notifications},
        )
        return notifications

    def mark_notifications_read(self, user_id: int, event_ids: int | Sequence[int]) -> Any:
        result = self.call(
            "POST",
            "mark_notifications_read",
            {"user_id": user_id, "event_ids": _as_list(event_ids)},
        )
        self.cache_storage.refresh_all(user_id, CACHE_KEY_NOTIFICATION)
        return result

    # ---- Access token ----

    def _get_access_token(self) -> dict[str, Any]:
        token = self.cache_storage.load(None, CACHE_KEY_ACCESS_TOKEN)
        if token is None or is_expired(token.get("expiration_time")):
            token = self._request_token()
            token["expiration_time"] = utc_timestamp() + token.get("expires_in", 0)
            self.cache_storage.save(None, CACHE_KEY_ACCESS_TOKEN, None, token)
        return token

    def _refresh_access_token(self) -> None:
        self.cache_storage.refresh(None, CACHE_KEY_ACCESS_TOKEN)
