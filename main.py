import argparse
import logging
import threading

from lessonwatch.config import load_settings
from lessonwatch.domain import FetchError
from lessonwatch.formatting import format_lessons_overview
from lessonwatch.http_trigger import build_server
from lessonwatch.mail_notifier import MailgunNotifier
from lessonwatch.orchestrator import RefreshOrchestrator
from lessonwatch.scheduler import JitteredInterval, start_timer_thread
from lessonwatch.upstream_client import UpstreamClient

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="lessonwatch: freed lesson watcher")
    parser.add_argument("--once", action="store_true", help="Fetch lessons once, print them and exit")
    args = parser.parse_args()

    _setup_logging()
    settings = load_settings()

    client = UpstreamClient(settings)
    orchestrator = RefreshOrchestrator(fetch_snapshot=client, notify=MailgunNotifier(settings))

    try:
        try:
            orchestrator.bootstrap()
        except FetchError:
            if args.once:
                raise
            # Store stays uninitialized; the first successful tick bootstraps it.
            logger.warning("Initial fetch failed, continuing with the timer")

        if args.once:
            print(format_lessons_overview(orchestrator.store.get(), tz=settings.display_timezone))
            return 0

        stop_event = threading.Event()
        interval = JitteredInterval(settings.check_interval_seconds, settings.check_jitter_seconds)
        start_timer_thread(orchestrator, interval, stop_event)

        server = build_server(orchestrator, settings.http_host, settings.http_port)
        logger.info("HTTP server listening on %s:%s", settings.http_host, settings.http_port)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            stop_event.set()
            server.server_close()
        return 0

    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
