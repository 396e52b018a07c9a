from __future__ import annotations

import argparse
import asyncio
import sys

from notifysend.core.errors import MalformedJobError
from notifysend.core.logging import configure_logging
from notifysend.domain.messages import parse_send_message
from notifysend.services.send.queue import enqueue_send_message


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enqueue one recipient send job")
    parser.add_argument("--notification-id", required=True)
    parser.add_argument("--recipient-id", required=True)
    parser.add_argument("--recipient-type", default="user", help="user|team|channel")
    parser.add_argument("--conversation-id", default=None)
    parser.add_argument("--service-url", default=None)
    parser.add_argument("--user-type", default=None)
    parser.add_argument("--delay-seconds", type=float, default=0.0)
    return parser


async def _enqueue(args: argparse.Namespace) -> int:
    # Validate through the same schema the worker uses before touching Redis.
    try:
        message = parse_send_message(
            {
                "notification_id": args.notification_id,
                "recipient_id": args.recipient_id,
                "recipient_type": args.recipient_type,
                "conversation_id": args.conversation_id,
                "service_url": args.service_url,
                "user_type": args.user_type,
            }
        )
    except MalformedJobError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    job_id = await enqueue_send_message(message, delay_seconds=args.delay_seconds)
    print(job_id or "duplicate")
    return 0


def main() -> None:
    configure_logging()
    args = _build_parser().parse_args()
    raise SystemExit(asyncio.run(_enqueue(args)))


if __name__ == "__main__":
    main()
