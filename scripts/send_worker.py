from __future__ import annotations

from arq.worker import run_worker

from notifysend.core.logging import configure_logging
from notifysend.workers.send_worker import WorkerSettings


def main() -> None:
    # arq owns the event loop; the worker drains the send queue until signalled.
    configure_logging()
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
