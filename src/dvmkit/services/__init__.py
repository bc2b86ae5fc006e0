"""Services: the top layer of the diamond DAG.

Each service extends [BaseService][dvmkit.core.base_service.BaseService]
and implements ``async def run()`` for one cycle of work.

Attributes:
    JobProtocol: Customer side of NIP-90. Seals encrypted job requests,
        publishes them through the relay pool and tracks them until a
        result, an error or a timeout.

Examples:
    ```python
    from dvmkit.core import RelayPool
    from dvmkit.services import JobProtocol

    pool = RelayPool.from_yaml("config/relay_pool.yaml")
    async with pool:
        protocol = JobProtocol.from_yaml("config/job_protocol.yaml", pool=pool)
        handle = await protocol.submit([("hello", "text")], provider_pubkey)
        result = await protocol.wait_for_result(handle)
    ```
"""

from .job_protocol import JobHandle, JobProtocol, JobProtocolConfig


__all__ = [
    "JobHandle",
    "JobProtocol",
    "JobProtocolConfig",
]
