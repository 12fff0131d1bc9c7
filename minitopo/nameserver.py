"""
Retrying fan-out wrapper over the topology service hosts.
"""

from typing import Callable, List

from tenacity import Retrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from .config import ClientConfig, DEFAULT_RETRIES
from .errors import TransientRpcError
from .network.client import ShardManagerClient
from .network.records import Forwarding, LinkInfo, ShardId, ShardInfo


class Nameserver:
    """
    Topology client spanning one or more service hosts.

    Reads go to the first host; reload_forwardings fans out to all of them.
    Every call is retried on TransientRpcError up to `retries` attempts in
    total, without waiting between attempts, then re-raised.
    """

    def __init__(self, *hosts: str, dry_run: bool = False,
                 retries: int = DEFAULT_RETRIES, timeout: float = 10.0):
        if not hosts:
            raise ValueError("at least one nameserver host is required")

        self.hosts = list(hosts)
        self.dry_run = dry_run
        self.retries = retries

        self.all_clients = [ShardManagerClient.from_address(h, timeout) for h in self.hosts]
        self.client = self.all_clients[0]

        self._retrying = Retrying(
            stop=stop_after_attempt(retries),
            retry=retry_if_exception_type(TransientRpcError),
            before_sleep=self._log_retry,
            reraise=True,
        )

    @classmethod
    def from_config(cls, config: ClientConfig) -> 'Nameserver':
        return cls(*config.hosts, dry_run=config.dry_run,
                   retries=config.retries, timeout=config.timeout)

    def _log_retry(self, retry_state: RetryCallState):
        error = retry_state.outcome.exception()
        print(f"[nameserver] attempt {retry_state.attempt_number}/{self.retries} failed: {error}")

    def with_retry(self, fn: Callable, *args):
        """Call fn(*args) under the retry policy."""
        return self._retrying.copy()(fn, *args)

    def close(self):
        for client in self.all_clients:
            client.close()

    # ============ Reads ============

    def get_forwardings(self) -> List[Forwarding]:
        return self.with_retry(self.client.get_forwardings)

    def list_downward_links(self, shard_id: ShardId) -> List[LinkInfo]:
        return self.with_retry(self.client.list_downward_links, shard_id)

    def list_upward_links(self, shard_id: ShardId) -> List[LinkInfo]:
        return self.with_retry(self.client.list_upward_links, shard_id)

    def get_shard(self, shard_id: ShardId) -> ShardInfo:
        return self.with_retry(self.client.get_shard, shard_id)

    def reload_forwardings(self):
        for client in self.all_clients:
            self.with_retry(client.reload_forwardings)

    # ============ Writes ============

    def create_shard(self, info: ShardInfo):
        if self.dry_run:
            print(f"[nameserver] dry run: create_shard {info.id} ({info.class_name})")
            return
        self.with_retry(self.client.create_shard, info)

    def add_link(self, up_id: ShardId, down_id: ShardId, weight: int):
        if self.dry_run:
            print(f"[nameserver] dry run: add_link {up_id} -> {down_id} ({weight})")
            return
        self.with_retry(self.client.add_link, up_id, down_id, weight)

    def set_forwarding(self, forwarding: Forwarding):
        if self.dry_run:
            print(f"[nameserver] dry run: set_forwarding {forwarding.table_id} -> {forwarding.shard_id}")
            return
        self.with_retry(self.client.set_forwarding, forwarding)
