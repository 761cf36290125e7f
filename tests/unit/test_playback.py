import asyncio
import unittest

from services.audio.interface import STATE_CLOSED, STATE_RUNNING
from services.audio.playback import PlaybackController
from session_fakes import ContextFactory, pcm_payload


class TestPlaybackController(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.factory = ContextFactory()
        self.playback = PlaybackController(self.factory, sample_rate=24000)

    async def test_context_is_lazy_and_resumed(self):
        self.assertEqual(self.factory.contexts, [])
        self.assertTrue(await self.playback.play(pcm_payload(), "m1"))
        context = self.factory.contexts[0]
        self.assertEqual(context.sample_rate, 24000)
        self.assertEqual(context.resume_calls, 1)
        self.assertEqual(context.state, STATE_RUNNING)
        self.assertEqual(self.playback.active_message_id, "m1")
        self.assertEqual(context.sources[0].started, 1)
        self.assertEqual(len(context.sources[0].samples), 480)

    async def test_only_one_source_is_audible(self):
        await self.playback.play(pcm_payload(), "m1")
        await self.playback.play(pcm_payload(), "m2")
        first, second = self.factory.sources
        self.assertEqual(first.stopped, 1)
        self.assertEqual(first.disconnected, 1)
        self.assertEqual(second.stopped, 0)
        self.assertEqual(self.playback.active_message_id, "m2")
        self.assertEqual(len(self.factory.contexts), 1)

    async def test_same_message_toggles_off(self):
        await self.playback.play(pcm_payload(), "m1")
        self.assertFalse(await self.playback.play(pcm_payload(), "m1"))
        self.assertIsNone(self.playback.active_message_id)
        self.assertEqual(len(self.factory.sources), 1)
        self.assertEqual(self.factory.sources[0].stopped, 1)

    async def test_natural_completion_clears_state(self):
        await self.playback.play(pcm_payload(), "m1")
        source = self.factory.sources[0]
        source.finish()
        await asyncio.sleep(0)
        self.assertIsNone(self.playback.active_message_id)
        self.assertEqual(source.disconnected, 1)

    async def test_old_completion_does_not_clear_newer_clip(self):
        await self.playback.play(pcm_payload(), "m1")
        first = self.factory.sources[0]
        await self.playback.play(pcm_payload(), "m2")
        first.finish()
        await asyncio.sleep(0)
        self.assertEqual(self.playback.active_message_id, "m2")

    async def test_stop_is_idempotent(self):
        self.playback.stop()
        await self.playback.play(pcm_payload(), "m1")
        self.playback.stop()
        self.playback.stop()
        source = self.factory.sources[0]
        self.assertEqual(source.stopped, 1)
        self.assertEqual(source.disconnected, 1)
        self.assertIsNone(self.playback.active_message_id)

    async def test_teardown_errors_are_contained(self):
        await self.playback.play(pcm_payload(), "m1")

        def boom():
            raise RuntimeError("already stopped")

        self.factory.sources[0].stop = boom
        self.playback.stop()
        self.assertIsNone(self.playback.active_message_id)
        self.assertTrue(await self.playback.play(pcm_payload(), "m2"))

    async def test_malformed_payload_leaves_nothing_active(self):
        await self.playback.play(pcm_payload(), "m1")
        self.assertFalse(await self.playback.play("AAA", "m2"))
        self.assertIsNone(self.playback.active_message_id)
        self.assertEqual(self.factory.sources[0].stopped, 1)
        self.assertEqual(len(self.factory.sources), 1)

    async def test_stop_during_resume_cancels_start(self):
        factory = ContextFactory(prepare=lambda ctx: setattr(ctx, "resume_gate", asyncio.Event()))
        playback = PlaybackController(factory)
        task = asyncio.create_task(playback.play(pcm_payload(), "m1"))
        await asyncio.sleep(0)
        playback.stop()
        factory.contexts[0].resume_gate.set()
        self.assertFalse(await task)
        self.assertEqual(factory.contexts[0].sources, [])
        self.assertIsNone(playback.active_message_id)

    async def test_wait_finished(self):
        await self.playback.play(pcm_payload(), "m1")
        waiter = asyncio.create_task(self.playback.wait_finished())
        await asyncio.sleep(0)
        self.factory.sources[0].finish()
        await asyncio.wait_for(waiter, 1)
        self.assertIsNone(self.playback.active_message_id)

    async def test_dispose_closes_context_and_next_play_recreates_it(self):
        await self.playback.play(pcm_payload(), "m1")
        self.playback.dispose()
        self.assertEqual(self.factory.contexts[0].state, STATE_CLOSED)
        self.assertIsNone(self.playback.active_message_id)
        await self.playback.play(pcm_payload(), "m2")
        self.assertEqual(len(self.factory.contexts), 2)
