#!/usr/bin/env python3
"""Cron wrapper: one orchestration cycle plus a Slack summary."""

import asyncio
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

import structlog

from hireloop.core.config import DEFAULT_CONFIG_PATH, load_settings
from hireloop.core.db import DEFAULT_DB_PATH
from hireloop.gateway.gateway import ActionGateway
from hireloop.pipeline.ledger import CandidateLedger
from hireloop.pipeline.orchestrator import Orchestrator
from hireloop.services.slack_notifier import SlackNotifier

log = structlog.get_logger()


async def main():
    start_time = datetime.now()
    log.info("scheduled_run_started", time=start_time.isoformat())

    settings = load_settings(DEFAULT_CONFIG_PATH)
    ledger = CandidateLedger(DEFAULT_DB_PATH)
    ledger.init()

    notifier = SlackNotifier(settings.notifications.slack_webhook_url or None)
    gateway = ActionGateway(settings.gateway, settings.gmail, config_path=DEFAULT_CONFIG_PATH)
    orchestrator = Orchestrator(ledger, gateway, settings, notifier=notifier)

    summary = await orchestrator.run_cycle()
    await notifier.send_cycle_summary(summary.to_dict())

    elapsed = (datetime.now() - start_time).total_seconds()
    log.info("scheduled_run_completed", elapsed_seconds=elapsed)


if __name__ == "__main__":
    asyncio.run(main())
