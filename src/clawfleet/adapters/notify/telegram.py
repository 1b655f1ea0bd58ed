"""Delivers notices to a child's parent over Telegram and remote mail."""

from __future__ import annotations

import shlex
from typing import List

import requests

from clawfleet.domain.errors import CollaboratorUnavailable, TransportError
from clawfleet.domain.markers import classify_result
from clawfleet.domain.instance import ParentNotifyTarget
from clawfleet.ports.collaborators import Notice, Notifier
from clawfleet.ports.transport import RemoteSession, tag_script

TELEGRAM_API = "https://api.telegram.org"


class ParentNotifier(Notifier):
    def __init__(self, *, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()

    def deliver(self, target: ParentNotifyTarget, notice: Notice, session: RemoteSession | None = None) -> List[str]:
        if target.is_empty:
            raise CollaboratorUnavailable("notifier", "no parent notification target configured")
        channels: List[str] = []
        errors: List[str] = []
        if target.has_telegram:
            try:
                self._send_telegram(target, notice)
                channels.append("telegram")
            except CollaboratorUnavailable as exc:
                errors.append(exc.reason)
        if target.email:
            if session is None:
                errors.append("email requires an open session")
            else:
                try:
                    self._send_mail(session, target.email, notice)
                    channels.append("email")
                except (CollaboratorUnavailable, TransportError) as exc:
                    errors.append(str(exc))
        if not channels:
            raise CollaboratorUnavailable("notifier", "; ".join(errors) or "no channel delivered")
        return channels

    def _send_telegram(self, target: ParentNotifyTarget, notice: Notice) -> None:
        url = f"{TELEGRAM_API}/bot{target.telegram_token}/sendMessage"
        text = f"{notice.subject}\n\n{notice.body}"
        try:
            response = self._session.post(
                url,
                json={"chat_id": target.chat_id, "text": text},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise CollaboratorUnavailable("telegram", type(exc).__name__) from exc
        if response.status_code != 200:
            raise CollaboratorUnavailable("telegram", f"sendMessage returned HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if isinstance(payload, dict) and payload.get("ok") is False:
            raise CollaboratorUnavailable("telegram", str(payload.get("description", "sendMessage rejected")))

    def _send_mail(self, session: RemoteSession, email: str, notice: Notice) -> None:
        body = (
            "if ! command -v mail >/dev/null 2>&1; then echo '__RESULT__fail:mail not installed'; exit 0; fi\n"
            f"if printf '%s\\n' {shlex.quote(notice.body)} | mail -s {shlex.quote(notice.subject)} {shlex.quote(email)}; then\n"
            "  echo '__RESULT__ok:sent'\n"
            "else\n"
            "  echo '__RESULT__fail:mail exited non-zero'\n"
            "fi\n"
        )
        outcome = classify_result(session.run(tag_script("notify.email", body)).stdout)
        if not outcome.ok:
            raise CollaboratorUnavailable("email", outcome.reason)


__all__ = ["ParentNotifier", "TELEGRAM_API"]
