"""Write → observe → revert against the CMS and the rendered site.

A transaction mutates one content entry, checks that the new value shows up
on the frontend, then restores the prior value. The restore runs on every
exit path of the observe step once the mutation has succeeded: pass, failed
assertion, transport error, timeout or cancellation.

Callers must not run two transactions against the same content id at once;
interleaved mutate/revert pairs would race and nothing here locks.
"""

import asyncio
import math
import time
from contextlib import asynccontextmanager
from enum import Enum

from playwright.async_api import Error as PlaywrightError

from site_config import SiteConfig
from verifier import FAIL, PASS, SKIPPED, CheckResult, first_line


class TransactionState(str, Enum):
    PENDING = "pending"
    MUTATED = "mutated"
    MUTATE_FAILED = "mutate_failed"
    OBSERVED = "observed"
    OBSERVE_FAILED = "observe_failed"
    REVERTED = "reverted"
    REVERT_FAILED = "revert_failed"


class TransactionIntegrityError(AssertionError):
    """The revert after a successful mutation failed; the CMS may hold test data."""


def unique_value(prefix: str = "Automated Test Title") -> str:
    return f"{prefix} {int(time.time() * 1000)}"


def response_ok(result) -> bool:
    # Accept Playwright APIResponse objects or plain booleans
    return bool(getattr(result, "ok", result))


def response_status(result) -> str:
    status = getattr(result, "status", None)
    return f"HTTP {status}" if status is not None else "not ok"


class ContentSyncTransaction:
    def __init__(self, target_id: str, prior_value: str, new_value: str | None = None, verbose: bool = False):
        if prior_value is None:
            raise ValueError("The prior value must be known before mutating")
        self.target_id = target_id
        self.prior_value = prior_value
        self.new_value = new_value or unique_value()
        self.verbose = verbose
        self.state = TransactionState.PENDING
        self.history: list[TransactionState] = [TransactionState.PENDING]
        self.mutate_error = ""
        self.observe_error = ""
        self.revert_error = ""
        self.revert_calls = 0

    def _set(self, state: TransactionState) -> None:
        self.state = state
        self.history.append(state)
        if self.verbose:
            print(f"→ Transaction {self.target_id}: {state.value}")

    @asynccontextmanager
    async def mutated(self, mutate, revert):
        """Acquire the mutation as a liability that revert always releases."""
        try:
            result = await mutate(self.new_value)
        except Exception as e:
            self.mutate_error = f"Mutation raised: {first_line(e)}"
            self._set(TransactionState.MUTATE_FAILED)
            raise
        if not response_ok(result):
            self.mutate_error = f"Mutation of {self.target_id} rejected: {response_status(result)}"
            self._set(TransactionState.MUTATE_FAILED)
            raise AssertionError(self.mutate_error)
        self._set(TransactionState.MUTATED)
        try:
            yield self
        finally:
            await self._release(revert)

    async def _release(self, revert) -> None:
        self.revert_calls += 1
        try:
            result = await revert(self.prior_value)
        except Exception as e:
            self.revert_error = f"Revert raised: {first_line(e)}"
        else:
            if not response_ok(result):
                self.revert_error = f"Revert rejected: {response_status(result)}"
        if self.revert_error:
            self._set(TransactionState.REVERT_FAILED)
            print(
                f"🚨 HIGH SEVERITY: could not restore content {self.target_id} to {self.prior_value!r} "
                f"({self.revert_error}); it may still hold {self.new_value!r}"
            )
        else:
            self._set(TransactionState.REVERTED)

    async def run(self, mutate, observe, revert) -> "ContentSyncTransaction":
        """mutate(new_value), observe(new_value), revert(prior_value) are async callables.

        Raises the observe failure if there was one, otherwise
        TransactionIntegrityError when the revert failed.
        """
        async with self.mutated(mutate, revert):
            try:
                await observe(self.new_value)
            except asyncio.CancelledError:
                self.observe_error = "Observe step cancelled"
                self._set(TransactionState.OBSERVE_FAILED)
                raise
            except Exception as e:
                self.observe_error = first_line(e)
                self._set(TransactionState.OBSERVE_FAILED)
                raise
            self._set(TransactionState.OBSERVED)
        if self.revert_error:
            raise TransactionIntegrityError(self.revert_error)
        return self

    def results(self, name: str = "Content Sync") -> list[CheckResult]:
        h = self.history
        if TransactionState.MUTATE_FAILED in h:
            return [
                CheckResult(name, "cms-mutate", FAIL, self.mutate_error),
                CheckResult(name, "cms-observe", SKIPPED, "Mutation failed; nothing to observe"),
                CheckResult(name, "cms-revert", SKIPPED, "Mutation failed; nothing to revert"),
            ]
        out = []
        if TransactionState.MUTATED in h:
            out.append(CheckResult(name, "cms-mutate", PASS, f"Set {self.target_id} to {self.new_value!r}"))
        else:
            out.append(CheckResult(name, "cms-mutate", SKIPPED, "Transaction not started"))
        if TransactionState.OBSERVED in h:
            out.append(CheckResult(name, "cms-observe", PASS, f"{self.new_value!r} visible on the site"))
        elif TransactionState.OBSERVE_FAILED in h:
            out.append(CheckResult(name, "cms-observe", FAIL, self.observe_error))
        else:
            out.append(CheckResult(name, "cms-observe", SKIPPED, "Observe step not reached"))
        if TransactionState.REVERTED in h:
            out.append(CheckResult(name, "cms-revert", PASS, f"Restored {self.prior_value!r}"))
        elif TransactionState.REVERT_FAILED in h:
            out.append(CheckResult(name, "cms-revert", FAIL, self.revert_error, severity="high"))
        else:
            out.append(CheckResult(name, "cms-revert", SKIPPED, "Revert not reached"))
        return out

    def to_dict(self) -> dict:
        return {
            "target_id": self.target_id,
            "prior_value": self.prior_value,
            "new_value": self.new_value,
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "revert_calls": self.revert_calls,
        }


async def wait_for_text(
    page,
    url: str,
    selector: str,
    expected: str,
    timeout_ms: int,
    poll_ms: int = 1000,
    navigation_timeout_ms: int = 45000,
    verbose: bool = False,
) -> str:
    """Reload url until an element matching selector contains expected, or time out.

    CMS writes reach the rendered page through caches, so one read is not enough.
    Each reload is capped at the time left, so the whole wait ends near timeout_ms.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    last_seen = ""
    polls = 0
    while True:
        polls += 1
        remaining_ms = max(1, math.ceil((deadline - loop.time()) * 1000))
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=min(navigation_timeout_ms, remaining_ms))
            texts = await page.locator(selector).all_text_contents()
        except PlaywrightError as e:
            last_seen = f"<{first_line(e)}>"
            texts = []
        for t in texts:
            if expected in t:
                if verbose:
                    print(f"✓ '{expected}' visible in {selector} after {polls} poll(s)")
                return t
        if texts:
            last_seen = " | ".join(t.strip() for t in texts)
        if verbose:
            print(f"→ Poll {polls}: {selector} shows {last_seen!r}")
        remaining_ms = (deadline - loop.time()) * 1000
        if poll_ms <= 0 or remaining_ms <= 0:
            break
        await page.wait_for_timeout(min(poll_ms, math.ceil(remaining_ms)))
    raise AssertionError(
        f"'{expected}' did not appear in {selector} within {timeout_ms}ms (last seen: {last_seen!r})"
    )


def new_heading_transaction(config: SiteConfig) -> ContentSyncTransaction:
    config.require_cms()
    return ContentSyncTransaction(config.target_id, config.original_value, verbose=config.verbose)


async def run_heading_sync(page, cms, config: SiteConfig, tx: ContentSyncTransaction) -> ContentSyncTransaction:
    """Change the article title, expect it in the home page heading, then put it back."""

    async def mutate(value):
        return await cms.update_article_title(tx.target_id, value)

    async def observe(value):
        await wait_for_text(
            page,
            config.url_for("/"),
            config.heading_selector,
            value,
            timeout_ms=config.sync_timeout_ms,
            poll_ms=config.poll_interval_ms,
            navigation_timeout_ms=config.navigation_timeout_ms,
            verbose=config.verbose,
        )

    async def revert(value):
        return await cms.update_article_title(tx.target_id, value)

    return await tx.run(mutate, observe, revert)
