"""Remote API Mock for Reconciler Testing.

In-memory implementation of the remote resource API used by the syslog
drain reconciler, so tests run without a live platform.

Key Features:
- In-memory drain state keyed by name
- Recording of every primitive call with its arguments and cluster
- Error injection per primitive
- Client acquisition failure simulation

Usage:
    from convox_mock import MockConvoxContext

    with MockConvoxContext() as ctx:
        reconciler = SyslogReconciler(ctx.provider)
        reconciler.create(spec)

        assert ctx.state.calls_to("create_resource")
"""

from .context import MockAcquisitionError, MockConvoxContext
from .resources import MockCall, MockConvoxClient, MockDrain, MockResourceState

__all__ = [
    "MockAcquisitionError",
    "MockCall",
    "MockConvoxClient",
    "MockConvoxContext",
    "MockDrain",
    "MockResourceState",
]
