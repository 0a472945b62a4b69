"""Build worker - Pulumi entry point.

Provisions one Azure VM running the Caddy build image behind basic auth:
- network perimeter, static public IP, NIC
- cloud-init document carrying the Caddy config
- optional A record in an existing DNS zone
"""

import pulumi

from buildworker.config.stack import from_pulumi_config
from buildworker.logging.log import init_logging
from buildworker.observers.dispatcher import EventBus
from buildworker.observers.logger import LoggerObserver
from buildworker.provision.worker import provision

logger, run_id, _ = init_logging(stack=pulumi.get_stack())

inputs = from_pulumi_config(pulumi.Config())

worker = provision(
    inputs.settings,
    registry_username=inputs.registry_username,
    registry_password=inputs.registry_password,
    bus=EventBus(observers=[LoggerObserver(logger)]),
    stack=pulumi.get_stack(),
    run_id=run_id,
)

worker.export()
