import asyncio
import logging

from .config import get_settings
from .services.lifecycle import LifecycleOrchestrator
from .services.orchestration.kubernetes.client import get_k8s_client
from .services.task_manager import TaskManager

settings = get_settings()

logger = logging.getLogger(__name__)


async def main() -> None:
    k8s_client = get_k8s_client()
    orchestrator = LifecycleOrchestrator(k8s_client)
    manager = TaskManager(
        orchestrator,
        worker_count=settings.worker_count,
        record_ttl_hours=settings.task_record_ttl_hours,
    )

    manager.start()
    watchers = [
        asyncio.create_task(manager.watch(k8s_client, namespace))
        for namespace in settings.namespaces
    ]
    logger.info(f"Watching console tasks in: {', '.join(settings.namespaces)}")

    try:
        await asyncio.gather(*watchers)
    finally:
        for watcher in watchers:
            watcher.cancel()
        await manager.stop()


def run() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    run()
