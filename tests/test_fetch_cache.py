import asyncio
import threading
import unittest
from unittest.mock import MagicMock

from _helpers import CallbackRecorder, FakeFetcher, png_bytes

from fetchcache.config import LoadStatus
from fetchcache.core.cache import FetchCache
from fetchcache.exceptions import DecodeFailure, FetchFailure, InvalidKey


URL_A = "https://x/a.png"
URL_B = "https://x/b.png"


class TestFetchCache(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.fetcher = FakeFetcher({URL_A: png_bytes(), URL_B: png_bytes((2, 2))})
        self.cache = FetchCache(self.fetcher)

    async def test_miss_fetches_then_hits_without_fetching(self):
        first = CallbackRecorder()
        self.cache.request(URL_A, first)
        [result] = await first.wait()

        self.assertEqual(result.status, LoadStatus.LOADED)
        self.assertTrue(result.ok)
        self.assertEqual(result.image.size, (4, 3))
        self.assertEqual(self.fetcher.calls, [URL_A])

        # a hit on the loop thread resolves before request() returns
        second = CallbackRecorder()
        self.cache.request(URL_A, second)
        self.assertEqual(len(second.results), 1)
        self.assertEqual(second.results[0].status, LoadStatus.CACHED)
        self.assertIs(second.results[0].image, result.image)
        self.assertEqual(self.fetcher.calls, [URL_A])
        self.assertEqual(self.cache.stats.hits, 1)
        self.assertEqual(self.cache.stats.fetches, 1)

    async def test_concurrent_requests_share_one_fetch(self):
        self.fetcher.gate.clear()
        recorders = [CallbackRecorder() for _ in range(3)]
        for recorder in recorders:
            self.cache.request(URL_B, recorder)
        await asyncio.sleep(0)

        self.assertEqual(self.fetcher.calls, [URL_B])
        self.assertEqual(self.cache.in_flight, 1)
        self.assertTrue(all(not r.results for r in recorders))

        self.fetcher.gate.set()
        results = [(await r.wait())[0] for r in recorders]

        self.assertEqual(self.fetcher.calls, [URL_B])
        self.assertTrue(all(r.status == LoadStatus.LOADED for r in results))
        self.assertTrue(all(r.image is results[0].image for r in results))
        self.assertEqual(self.cache.in_flight, 0)
        self.assertEqual(self.cache.stats.coalesced, 2)

    async def test_waiters_notified_once_in_registration_order(self):
        self.fetcher.gate.clear()
        order = []
        done = asyncio.Event()
        for idx in range(4):
            def callback(result, idx=idx):
                order.append(idx)
                if len(order) == 4:
                    done.set()
            self.cache.request(URL_A, callback)
        self.fetcher.gate.set()
        await asyncio.wait_for(done.wait(), 2)
        await asyncio.sleep(0)
        self.assertEqual(order, [0, 1, 2, 3])

    async def test_invalid_keys_never_fetch(self):
        for key in ("", "   ", None, "not a url", "ftp://x/a.png", "https://", 42):
            with self.subTest(key=key):
                recorder = CallbackRecorder()
                self.cache.request(key, recorder)
                # resolved synchronously
                self.assertEqual(len(recorder.results), 1)
                result = recorder.results[0]
                self.assertEqual(result.status, LoadStatus.INVALID_KEY)
                self.assertIsNone(result.image)
                self.assertIsInstance(result.error, InvalidKey)
        self.assertEqual(self.fetcher.calls, [])
        self.assertEqual(len(self.cache), 0)

    async def test_failed_fetch_is_not_cached(self):
        missing = "https://x/missing.png"
        recorder = CallbackRecorder()
        self.cache.request(missing, recorder)
        [result] = await recorder.wait()

        self.assertEqual(result.status, LoadStatus.FETCH_FAILED)
        self.assertIsNone(result.image)
        self.assertIsInstance(result.error, FetchFailure)
        self.assertNotIn(missing, self.cache)
        self.assertEqual(self.cache.in_flight, 0)

        # no negative caching: the next request tries again
        self.fetcher.payloads[missing] = png_bytes()
        retry = CallbackRecorder()
        self.cache.request(missing, retry)
        [result] = await retry.wait()
        self.assertEqual(result.status, LoadStatus.LOADED)
        self.assertEqual(self.fetcher.calls, [missing, missing])

    async def test_undecodable_bytes_are_a_decode_failure(self):
        garbage = "https://x/garbage.png"
        self.fetcher.payloads[garbage] = b"<html>not an image</html>"
        result = await self.cache.load(garbage)

        self.assertEqual(result.status, LoadStatus.DECODE_FAILED)
        self.assertIsNone(result.image)
        self.assertIsInstance(result.error, DecodeFailure)
        self.assertEqual(result.error.url, garbage)
        self.assertNotIn(garbage, self.cache)
        self.assertEqual(self.cache.stats.failures, 1)

    async def test_unexpected_fetcher_error_becomes_fetch_failure(self):
        broken = "https://x/broken.png"
        self.fetcher.payloads[broken] = ConnectionResetError("reset by peer")
        with self.assertLogs("FetchCache", level="ERROR"):
            result = await self.cache.load(broken)
        self.assertEqual(result.status, LoadStatus.FETCH_FAILED)
        self.assertIsInstance(result.error, FetchFailure)
        self.assertIsInstance(result.error.__cause__, ConnectionResetError)
        self.assertEqual(self.cache.in_flight, 0)

    async def test_keys_normalizing_alike_share_entry(self):
        self.fetcher.gate.clear()
        first, second = CallbackRecorder(), CallbackRecorder()
        self.cache.request("https://X/a.png", first)
        self.cache.request("  https://x/a.png#top ", second)
        self.fetcher.gate.set()
        await first.wait()
        await second.wait()
        self.assertEqual(self.fetcher.calls, [URL_A])
        self.assertIn("https://x/a.png", self.cache)

    async def test_lru_bound_evicts_least_recently_used(self):
        urls = [f"https://x/{i}.png" for i in range(3)]
        fetcher = FakeFetcher({url: png_bytes() for url in urls})
        cache = FetchCache(fetcher, max_entries=2)

        await cache.get(urls[0])
        await cache.get(urls[1])
        # touch 0 so 1 becomes the oldest
        self.assertIsNotNone(await cache.get(urls[0]))
        await cache.get(urls[2])

        self.assertEqual(len(cache), 2)
        self.assertIn(urls[0], cache)
        self.assertNotIn(urls[1], cache)
        self.assertIn(urls[2], cache)
        self.assertEqual(cache.stats.evictions, 1)

    async def test_unbounded_cache_keeps_everything(self):
        urls = [f"https://x/{i}.png" for i in range(5)]
        cache = FetchCache(FakeFetcher({url: png_bytes() for url in urls}), max_entries=None)
        for url in urls:
            await cache.get(url)
        self.assertEqual(len(cache), 5)
        self.assertEqual(cache.stats.evictions, 0)

    def test_rejects_nonpositive_bound(self):
        with self.assertRaises(ValueError):
            FetchCache(FakeFetcher(), max_entries=0)

    async def test_raising_callback_does_not_starve_other_waiters(self):
        self.fetcher.gate.clear()
        bad = MagicMock(side_effect=RuntimeError("boom"))
        good = CallbackRecorder()
        self.cache.request(URL_A, bad)
        self.cache.request(URL_A, good)
        with self.assertLogs("FetchCache", level="ERROR") as logs:
            self.fetcher.gate.set()
            await good.wait()
        bad.assert_called_once()
        self.assertTrue(any("Result callback raised" in line for line in logs.output))

    async def test_error_hook_receives_failures(self):
        hook = MagicMock()
        cache = FetchCache(self.fetcher, on_error=hook)
        await cache.load("https://x/missing.png")
        cache.request("", lambda result: None)

        self.assertEqual(hook.call_count, 2)
        key, error = hook.call_args_list[0].args
        self.assertEqual(key, "https://x/missing.png")
        self.assertIsInstance(error, FetchFailure)
        self.assertIsInstance(hook.call_args_list[1].args[1], InvalidKey)

    async def test_raising_error_hook_is_contained(self):
        cache = FetchCache(self.fetcher, on_error=MagicMock(side_effect=ValueError("hook")))
        with self.assertLogs("FetchCache", level="ERROR"):
            result = await cache.load("https://x/missing.png")
        self.assertEqual(result.status, LoadStatus.FETCH_FAILED)

    async def test_requests_from_worker_threads_deliver_on_loop(self):
        loop = asyncio.get_running_loop()
        cache = FetchCache(self.fetcher, loop=loop)
        loop_thread = threading.get_ident()
        seen_threads = []
        recorder = CallbackRecorder()

        def callback(result):
            seen_threads.append(threading.get_ident())
            recorder(result)

        await asyncio.to_thread(cache.request, URL_A, callback)
        await recorder.wait()
        # and a hit requested from a worker thread
        await asyncio.to_thread(cache.request, URL_A, callback)
        results = await recorder.wait(2)

        self.assertEqual(seen_threads, [loop_thread, loop_thread])
        self.assertEqual([r.status for r in results], [LoadStatus.LOADED, LoadStatus.CACHED])
        self.assertEqual(self.fetcher.calls, [URL_A])

    async def test_load_into_swaps_placeholder_on_success_only(self):
        placeholder = object()
        target = MagicMock()
        self.cache.load_into(URL_A, target, placeholder)
        self.assertIs(target.image, placeholder)
        image = await self.cache.get(URL_A)
        self.assertIs(target.image, image)

        failing = MagicMock()
        self.cache.load_into("https://x/missing.png", failing, placeholder)
        await self.cache.load("https://x/missing.png")
        self.assertIs(failing.image, placeholder)

        invalid = MagicMock()
        self.cache.load_into("", invalid, placeholder)
        self.assertIs(invalid.image, placeholder)

    async def test_get_returns_none_on_failure(self):
        self.assertIsNone(await self.cache.get("https://x/missing.png"))
        self.assertIsNone(await self.cache.get(""))

    async def test_peek_invalidate_and_clear(self):
        self.assertIsNone(self.cache.peek(URL_A))
        image = await self.cache.get(URL_A)
        await self.cache.get(URL_B)
        hits = self.cache.stats.hits

        self.assertIs(self.cache.peek(URL_A), image)
        self.assertEqual(self.cache.stats.hits, hits)
        self.assertEqual(self.fetcher.calls, [URL_A, URL_B])

        self.assertTrue(self.cache.invalidate(URL_A))
        self.assertFalse(self.cache.invalidate(URL_A))
        self.assertFalse(self.cache.invalidate(""))
        self.assertNotIn(URL_A, self.cache)

        await self.cache.get(URL_A)
        self.assertEqual(self.fetcher.calls, [URL_A, URL_B, URL_A])

        self.cache.clear()
        self.assertEqual(len(self.cache), 0)

    async def test_close_closes_fetcher(self):
        await self.cache.close()
        self.assertTrue(self.fetcher.closed)

    async def test_cancelled_mid_fetch_notifies_waiters(self):
        self.fetcher.gate.clear()
        first, second = CallbackRecorder(), CallbackRecorder()
        self.cache.request(URL_A, first)
        self.cache.request(URL_A, second)
        await asyncio.sleep(0)
        self.assertEqual(self.fetcher.calls, [URL_A])

        self.cache._pending[URL_A].task.cancel()
        [result] = await first.wait()
        await second.wait()

        self.assertEqual(result.status, LoadStatus.FETCH_FAILED)
        self.assertIsInstance(result.error, FetchFailure)
        self.assertEqual(result.error.reason, "cancelled")
        self.assertEqual(self.cache.in_flight, 0)
        self.assertNotIn(URL_A, self.cache)

        # the key isn't stuck: the next request fetches again
        self.fetcher.gate.set()
        retry = await self.cache.load(URL_A)
        self.assertEqual(retry.status, LoadStatus.LOADED)
        self.assertEqual(self.fetcher.calls, [URL_A, URL_A])

    async def test_cancelled_before_start_notifies_waiters(self):
        recorder = CallbackRecorder()
        self.cache.request(URL_A, recorder)
        # cancelled before the task ever ran
        self.cache._pending[URL_A].task.cancel()
        [result] = await recorder.wait()

        self.assertEqual(result.status, LoadStatus.FETCH_FAILED)
        self.assertEqual(self.fetcher.calls, [])
        self.assertEqual(self.cache.in_flight, 0)
        self.assertEqual(self.cache.stats.failures, 1)

    def test_request_without_loop_raises(self):
        cache = FetchCache(FakeFetcher())
        with self.assertRaises(RuntimeError):
            cache.request(URL_A, lambda result: None)


class TestClosedLoop(unittest.TestCase):
    def test_miss_on_closed_loop_fails_without_leaving_it_pending(self):
        loop = asyncio.new_event_loop()
        fetcher = FakeFetcher({URL_A: png_bytes()})
        cache = FetchCache(fetcher, loop=loop)
        loop.close()

        results = []
        cache.request(URL_A, results.append)
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].status, LoadStatus.FETCH_FAILED)
        self.assertEqual(results[0].error.reason, "event loop closed")
        self.assertEqual(cache.in_flight, 0)

        # a second request doesn't join a fetch that will never run
        cache.request(URL_A, results.append)
        self.assertEqual(len(results), 2)
        self.assertEqual(results[1].status, LoadStatus.FETCH_FAILED)
        self.assertEqual(cache.stats.coalesced, 0)
        self.assertEqual(fetcher.calls, [])

    def test_hit_on_closed_loop_is_still_delivered(self):
        loop = asyncio.new_event_loop()
        cache = FetchCache(FakeFetcher({URL_A: png_bytes()}), loop=loop)
        loaded = loop.run_until_complete(cache.load(URL_A))
        loop.close()

        results = []
        cache.request(URL_A, results.append)
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].status, LoadStatus.CACHED)
        self.assertIs(results[0].image, loaded.image)


if __name__ == "__main__":
    unittest.main()
