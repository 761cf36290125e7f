import asyncio
import json
import unittest

from models.session_models import PersonaConfig
from services.audio.playback import PlaybackController
from services.session.conversation import ConversationEngine, SessionInitError
from services.session.enrichment import MediaEnrichmentOrchestrator
from services.session.session_store import SessionStore
from session_fakes import (
    ContextFactory,
    FakeChat,
    FakeImageGenerator,
    FakeImageStore,
    FakeSessionDAL,
    FakeSpeech,
)

GREETING = (
    "Mon Dieu! Who are you?\n"
    "[[SCENE: Napoleon startled inside a tent]]\n"
    "[[CONTEXT: Austerlitz | December 1, 1805 | 11:45 PM]]"
)


class TestConversationEngine(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.dal = FakeSessionDAL()
        self.store = SessionStore(self.dal)
        self.chat = FakeChat([GREETING])
        self.generator = FakeImageGenerator()
        self.enrichment = MediaEnrichmentOrchestrator(self.store, self.generator, FakeImageStore())
        self.speech = FakeSpeech()
        self.contexts = ContextFactory()
        self.engine = ConversationEngine(
            self.store,
            self.chat,
            self.enrichment,
            self.speech,
            PlaybackController(self.contexts),
        )
        self.config = PersonaConfig(character="Napoleon", era="1805", voice_gender="MALE")

    async def asyncTearDown(self):
        await self.engine.close()

    async def test_start_session_parses_greeting_and_enriches(self):
        session = await self.engine.start_session(self.config, "fr")
        self.assertEqual(self.chat.initialized, [("Napoleon", "1805", "fr", [])])
        self.assertIn("Anomaly detected", self.chat.turns[0])

        greeting = session.messages[0]
        self.assertEqual(greeting.role, "persona")
        self.assertEqual(greeting.text, "Mon Dieu! Who are you?")
        self.assertEqual(greeting.location_context, "Austerlitz | December 1, 1805 | 11:45 PM")
        self.assertTrue(greeting.image_pending)
        self.assertEqual(self.engine.current_visual.id, greeting.id)

        await self.enrichment.drain()
        self.assertEqual(greeting.image_ref, "/images/1.png")
        self.assertFalse(greeting.image_pending)
        self.assertEqual(self.engine.current_visual.image_ref, "/images/1.png")
        self.assertIn(session.id, self.dal.rows)

    async def test_start_failure_leaves_no_session(self):
        self.chat.replies = [ConnectionError("backend unreachable")]
        with self.assertRaises(SessionInitError):
            await self.engine.start_session(self.config, "es")
        self.assertIsNone(self.engine.current_session_id)
        self.assertEqual(self.dal.rows, {})

    async def test_greeting_without_scene_is_still_the_visual(self):
        self.chat.replies = ["Bonjour."]
        session = await self.engine.start_session(self.config, "fr")
        greeting = session.messages[0]
        self.assertFalse(greeting.image_pending)
        self.assertEqual(self.engine.current_visual.id, greeting.id)
        self.assertEqual(self.generator.prompts, [])

    async def test_send_message_appends_user_then_persona(self):
        session = await self.engine.start_session(self.config, "en")
        self.chat.replies = ["A visitor? Speak. [[CONTEXT: Tent | 1805 | Night]]"]
        reply = await self.engine.send_message(session.id, "  I come from 2024.  ")
        self.assertEqual([m.role for m in session.messages], ["persona", "user", "persona"])
        self.assertEqual(session.messages[1].text, "I come from 2024.")
        self.assertEqual(reply.text, "A visitor? Speak.")
        self.assertFalse(reply.image_pending)
        self.assertEqual(self.chat.turns[-1], "I come from 2024.")

    async def test_failed_turn_keeps_user_message(self):
        session = await self.engine.start_session(self.config, "en")
        self.chat.replies = [TimeoutError("slow backend")]
        self.assertIsNone(await self.engine.send_message(session.id, "Hello?"))
        self.assertEqual([m.role for m in session.messages], ["persona", "user"])

    async def test_empty_text_is_rejected(self):
        session = await self.engine.start_session(self.config, "en")
        with self.assertRaises(ValueError):
            await self.engine.send_message(session.id, "   ")

    async def test_empty_scene_directive_is_not_enriched(self):
        session = await self.engine.start_session(self.config, "en")
        self.chat.replies = ["Silence. [[SCENE: ]]"]
        reply = await self.engine.send_message(session.id, "...")
        self.assertIsNone(reply.scene_prompt)
        self.assertFalse(reply.image_pending)

    async def test_reply_after_exit_is_dropped(self):
        session = await self.engine.start_session(self.config, "en")
        await self.enrichment.drain()
        gate = asyncio.Event()
        original = self.chat.send_turn

        async def slow_turn(text):
            await gate.wait()
            return await original(text)

        self.chat.send_turn = slow_turn
        task = asyncio.create_task(self.engine.send_message(session.id, "Still there?"))
        await asyncio.sleep(0)
        self.engine.exit_session()
        gate.set()
        self.assertIsNone(await task)
        self.assertIsNone(self.engine.current_visual)

    async def test_resume_restores_history_and_latest_visual(self):
        session = await self.engine.start_session(self.config, "fr")
        await self.enrichment.drain()
        self.chat.replies = ["Continue."]
        await self.engine.send_message(session.id, "Tell me of Austerlitz")
        self.engine.exit_session()

        resumed = await self.engine.resume_session(session.id, "fr")
        self.assertEqual(len(resumed.messages), 3)
        self.assertEqual(self.engine.current_session_id, session.id)
        _, _, _, history = self.chat.initialized[-1]
        self.assertEqual(history, ["Mon Dieu! Who are you?", "Tell me of Austerlitz", "Continue."])
        self.assertEqual(self.engine.current_visual.image_ref, "/images/1.png")

    async def test_resume_unknown_session(self):
        with self.assertRaises(KeyError):
            await self.engine.resume_session("missing", "es")

    async def test_audio_is_synthesized_once_and_cached(self):
        session = await self.engine.start_session(self.config, "fr")
        message_id = session.messages[0].id

        self.assertTrue(await self.engine.play_message_audio(session.id, message_id))
        self.assertEqual(self.speech.calls, [("Mon Dieu! Who are you?", "MALE")])
        self.assertEqual(self.engine.playback.active_message_id, message_id)

        self.assertFalse(await self.engine.play_message_audio(session.id, message_id))
        self.assertIsNone(self.engine.playback.active_message_id)

        self.assertTrue(await self.engine.play_message_audio(session.id, message_id))
        self.assertEqual(len(self.speech.calls), 1)
        self.assertIsNone(self.engine.audio_loading_id)

    async def test_synthesis_failure_plays_nothing(self):
        session = await self.engine.start_session(self.config, "fr")
        self.speech.payload = ""
        self.assertFalse(await self.engine.play_message_audio(session.id, session.messages[0].id))
        self.assertIsNone(self.engine.playback.active_message_id)
        self.assertIsNone(session.messages[0].audio_payload)

    async def test_sending_a_message_stops_playback(self):
        session = await self.engine.start_session(self.config, "fr")
        await self.engine.play_message_audio(session.id, session.messages[0].id)
        self.chat.replies = ["Oui."]
        await self.engine.send_message(session.id, "Stop talking")
        self.assertIsNone(self.engine.playback.active_message_id)

    async def test_unknown_message_audio(self):
        session = await self.engine.start_session(self.config, "fr")
        with self.assertRaises(KeyError):
            await self.engine.play_message_audio(session.id, "missing")

    async def test_delete_current_session(self):
        session = await self.engine.start_session(self.config, "fr")
        await self.enrichment.drain()
        self.assertTrue(await self.engine.delete_session(session.id))
        self.assertIsNone(self.engine.current_session_id)
        self.assertEqual(await self.engine.list_sessions(), [])

    async def test_message_to_inactive_session_is_rejected(self):
        first = await self.engine.start_session(self.config, "fr")
        self.chat.replies = ["Salve."]
        second = await self.engine.start_session(PersonaConfig(character="Caesar", era="44 BC"), "la")
        turns = list(self.chat.turns)

        with self.assertRaises(KeyError):
            await self.engine.send_message(first.id, "Are you still there?")
        self.assertEqual(self.chat.turns, turns)
        self.assertEqual([m.role for m in first.messages], ["persona"])
        self.assertEqual([m.role for m in second.messages], ["persona"])

    async def test_reply_after_switching_sessions_is_dropped(self):
        first = await self.engine.start_session(self.config, "fr")
        gate = asyncio.Event()
        original = self.chat.send_turn

        async def slow_turn(text):
            await gate.wait()
            return await original(text)

        self.chat.send_turn = slow_turn
        task = asyncio.create_task(self.engine.send_message(first.id, "Wait for me"))
        await asyncio.sleep(0)
        self.chat.send_turn = original
        self.chat.replies = ["Salve.", "Late reply for Napoleon."]
        second = await self.engine.start_session(PersonaConfig(character="Caesar", era="44 BC"), "la")
        gate.set()

        self.assertIsNone(await task)
        self.assertEqual([m.text for m in second.messages], ["Salve."])

    async def test_starting_a_session_forgets_the_previous_one(self):
        first = await self.engine.start_session(self.config, "fr")
        self.chat.replies = ["Salve."]
        second = await self.engine.start_session(PersonaConfig(character="Caesar", era="44 BC"), "la")
        self.assertFalse(self.store.has(first.id))
        self.assertTrue(self.store.has(second.id))
        self.assertIn(first.id, self.dal.rows)

    async def test_resume_failure_leaves_no_live_session(self):
        session = await self.engine.start_session(self.config, "fr")
        await self.enrichment.drain()
        self.engine.exit_session()
        self.chat.fail_initialize = ConnectionError("backend unreachable")

        with self.assertRaises(SessionInitError):
            await self.engine.resume_session(session.id, "fr")
        self.assertFalse(self.store.has(session.id))
        self.assertIsNone(self.engine.current_session_id)
        self.assertIsNone(self.engine.current_visual)

    async def test_resume_requests_images_left_pending_at_exit(self):
        gate = self.generator.hold("Napoleon startled inside a tent")
        session = await self.engine.start_session(self.config, "fr")
        self.engine.exit_session()
        gate.set()
        await self.enrichment.drain()
        stored = json.loads(self.dal.rows[session.id])["messages"][0]
        self.assertTrue(stored["image_pending"])

        resumed = await self.engine.resume_session(session.id, "fr")
        await self.enrichment.drain()
        greeting = resumed.messages[0]
        self.assertFalse(greeting.image_pending)
        self.assertEqual(greeting.image_ref, "/images/2.png")
        self.assertEqual(self.engine.current_visual.image_ref, "/images/2.png")
        self.assertFalse(json.loads(self.dal.rows[session.id])["messages"][0]["image_pending"])

    async def test_pending_flag_without_prompt_is_cleared_on_resume(self):
        self.chat.replies = ["Bonjour."]
        session = await self.engine.start_session(self.config, "fr")
        self.engine.exit_session()
        record = json.loads(self.dal.rows[session.id])
        record["messages"][0]["image_pending"] = True
        self.dal.rows[session.id] = json.dumps(record)

        resumed = await self.engine.resume_session(session.id, "fr")
        self.assertFalse(resumed.messages[0].image_pending)
        self.assertEqual(self.generator.prompts, [])

    async def test_audio_request_while_loading_is_ignored(self):
        session = await self.engine.start_session(self.config, "fr")
        message_id = session.messages[0].id
        self.speech.gate = asyncio.Event()

        first = asyncio.create_task(self.engine.play_message_audio(session.id, message_id))
        await asyncio.sleep(0)
        self.assertEqual(self.engine.audio_loading_id, message_id)
        self.assertFalse(await self.engine.play_message_audio(session.id, message_id))
        self.assertEqual(len(self.speech.calls), 1)

        self.speech.gate.set()
        self.assertTrue(await first)
        self.assertEqual(self.engine.playback.active_message_id, message_id)
        self.assertEqual(len(self.contexts.sources), 1)
