import asyncio
import logging
from typing import Any, Dict, List, Optional

from models.user import CaixinhaSummary, UserContext
from store.conversation_store import USERS

logger = logging.getLogger(__name__)

CAIXINHAS = "caixinhas"


class UserContextStore:
    def __init__(self, db):
        self.db = db
        self.users = db.collection(USERS)
        self.caixinhas = db.collection(CAIXINHAS)

    async def load_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        snap = await self.users.document(user_id).get()
        if snap.exists:
            return snap.to_dict() or {}
        return None

    async def load(self, user_id: str) -> UserContext:
        """
        Profile snapshot plus balances of the user's caixinhas.
        Missing pieces degrade to an empty context; this feeds prompts, not accounting.
        """
        try:
            profile = await self.load_profile(user_id)
        except Exception:
            logger.exception("[USER] load_profile failed for %s", user_id)
            profile = None
        if profile is None:
            return UserContext(user_id=user_id)

        name = profile.get("nome") or profile.get("displayName") or ""
        return UserContext(
            user_id=user_id,
            first_name=name.split()[0] if name.strip() else None,
            email=profile.get("email") or "",
            photo=profile.get("fotoDoPerfil") or "",
            roles=_roles(profile.get("roles")),
            caixinhas=await self._caixinhas(user_id, profile.get("caixinhas") or []),
        )

    async def _caixinhas(self, user_id: str, ids: List[str]) -> List[CaixinhaSummary]:
        if not ids:
            return []
        try:
            snaps = await asyncio.gather(*(self.caixinhas.document(cid).get() for cid in ids))
        except Exception:
            logger.warning("[USER] Failed to get caixinhas for %s", user_id, exc_info=True)
            return []
        out: List[CaixinhaSummary] = []
        for snap in snaps:
            if not snap.exists:
                continue
            data = snap.to_dict() or {}
            out.append(
                CaixinhaSummary(
                    id=snap.id,
                    name=data.get("nome") or data.get("name") or "",
                    balance=float(data.get("saldoTotal") or 0),
                )
            )
        return out


def _roles(raw: Any) -> List[str]:
    # stored either as a list of names or as {roleName: {...}}
    if isinstance(raw, dict):
        return [str(k) for k in raw.keys()]
    if isinstance(raw, (list, tuple)):
        return [str(r) for r in raw]
    return []
