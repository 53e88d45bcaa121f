"""Scheduled entry point for the daily renewal run (cron: 0 3 * * *)"""

import asyncio
import logging
import sys
import time

from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import DomainException
from splitpay_gateway.domain.models import RenewalBatchResult
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.database.repositories import SubscriberRepository
from splitpay_gateway.infrastructure.observability.logging import log_renewal_batch, setup_logging
from splitpay_gateway.services.renewals import RenewalEngine


async def run_renewals() -> RenewalBatchResult:
    engine = RenewalEngine.from_settings(StripeGateway(), SubscriberRepository())
    start_time = time.time()
    result = await engine.run()
    log_renewal_batch(result, (time.time() - start_time) * 1000)
    return result


def main() -> int:
    """Returns a non-zero exit status when the run could not start"""
    setup_logging(settings.log_level)
    try:
        asyncio.run(run_renewals())
    except DomainException as e:
        logging.error(f"Renewal run aborted: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
