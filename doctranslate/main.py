import argparse
import json
import signal
from types import FrameType

from doctranslate.broker.connection import QueuePublisher, connect_with_retry, declare_queues
from doctranslate.broker.retry import RetryPolicy
from doctranslate.config.settings import Settings
from doctranslate.ingress.service import IngressService, wait_for_result
from doctranslate.logging.logger import Log
from doctranslate.stages.registry import STAGE_NAMES, build_job_runner
from doctranslate.store.base import BaseJobStore
from doctranslate.store.factory import JobStoreFactory
from doctranslate.worker.runtime import StageRuntime


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doctranslate", description="Image to translated PDF pipeline"
    )
    commands = parser.add_subparsers(dest="command", required=True)
    for name in STAGE_NAMES:
        commands.add_parser(name, help=f"Run the {name} stage consumer")
    submit = commands.add_parser("submit", help="Queue an image for translation")
    submit.add_argument("path")
    submit.add_argument("--wait", action="store_true", help="Block until the PDF is ready")
    status = commands.add_parser("status", help="Show the current record of a job")
    status.add_argument("job_id")
    commands.add_parser("clear-store", help="Delete every job record")
    return parser


def run_stage(name: str, settings: Settings, store: BaseJobStore) -> None:
    runtime = StageRuntime(build_job_runner(name, settings, store), settings)

    def _on_term(signum: int, frame: FrameType | None) -> None:
        _ = frame
        Log.info(f"Received signal {signum}, stopping {name} stage")
        runtime.stop()

    signal.signal(signal.SIGTERM, _on_term)
    runtime.run()


def submit(path: str, wait: bool, settings: Settings, store: BaseJobStore) -> int:
    connection = connect_with_retry(
        settings.broker_url, RetryPolicy.from_settings(settings), name="ingress"
    )
    try:
        channel = connection.channel()
        declare_queues(
            channel,
            settings.ocr_queue,
            settings.translation_queue,
            settings.pdf_queue,
            settings.result_queue,
        )
        record = IngressService(store, QueuePublisher(channel), settings).submit(path)
        print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
        if not wait or record.status.is_terminal:
            return 0
        result = wait_for_result(
            channel,
            settings.result_queue,
            record.id,
            settings.result_wait_timeout_seconds,
            store=store,
        )
    finally:
        connection.close()
    if result is None:
        Log.error(
            f"No result for job {record.id} within "
            f"{settings.result_wait_timeout_seconds:g}s"
        )
        return 1
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0 if result.get("status") == "completed" else 1


def main(argv: list[str] | None = None) -> int:
    """Entry point: load settings -> open job store -> run the chosen command."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(
        settings.log_level, args.command if args.command in STAGE_NAMES else "ingress"
    )

    store = JobStoreFactory.create(settings)
    store.initialize()
    try:
        if args.command in STAGE_NAMES:
            run_stage(args.command, settings, store)
            return 0
        if args.command == "submit":
            return submit(args.path, args.wait, settings, store)
        if args.command == "status":
            record = store.get_by_id(args.job_id)
            if record is None:
                Log.error(f"Job {args.job_id} not found")
                return 1
            print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
            return 0
        removed = store.clear()
        Log.info(f"Cleared {removed} job records")
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    raise SystemExit(main())
