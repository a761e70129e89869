"""Scenario tests for the project workspace: create, edit, reload."""

import asyncio
import base64
import json

import httpx
import pytest

from truecrime_studio.core.config import get_settings
from truecrime_studio.schemas.project import DEFAULT_PROJECT_NAME, ResearchData
from truecrime_studio.schemas.storage import UploadResult
from truecrime_studio.services.autosave import AutosaveState
from truecrime_studio.services.blob_offload import MediaOffloader
from truecrime_studio.services.pipeline_client import PipelineClient
from truecrime_studio.services.project_codec import project_to_dict
from truecrime_studio.services.retry import RetryConfig
from truecrime_studio.services.workspace import ProjectWorkspace


DELAY = 0.05
AUDIO = "data:audio/mpeg;base64," + base64.b64encode(b"ID3 narration").decode()
IMAGE = "data:image/png;base64," + base64.b64encode(b"\x89PNG scene").decode()


class MemoryGateway:
    def __init__(self) -> None:
        self.objects = {}

    def upload_blob(self, data, mime_type, suggested_name):
        path = f"{len(self.objects)}-{suggested_name}"
        self.objects[path] = mime_type
        return UploadResult(url=f"https://cdn.example/{path}", path=path, size=len(data))

    def delete_blob(self, path):
        del self.objects[path]


def pipeline_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/generate-storyboard":
        return httpx.Response(
            200,
            json={
                "success": True,
                "storyboard": {"scenes": [{"sceneId": "s1", "previewImage": IMAGE}], "totalScenes": 1},
            },
        )
    if request.url.path == "/generate-voiceover":
        voice_style = json.loads(request.content)["voiceStyle"]
        return httpx.Response(
            200, json={"success": True, "audioData": AUDIO, "duration": 42.0, "voiceStyle": voice_style}
        )
    return httpx.Response(404, json={"success": False, "error": "unknown function"})


def make_pipeline() -> PipelineClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(pipeline_handler), base_url="http://pipeline.test")
    return PipelineClient(http, retry=RetryConfig(max_attempts=1, initial_delay=0.0, max_delay=0.0))


def test_create_edit_reload(repository):
    async def scenario():
        workspace = ProjectWorkspace(repository, autosave_delay_seconds=DELAY)
        workspace.update(name="The Lakeside Case", research_data=ResearchData(case_name="Lakeside", summary="Cold case"))
        await asyncio.sleep(DELAY * 3)
        workspace.update(script_text="It began on a quiet night.", current_phase=2)
        await asyncio.sleep(DELAY * 3)
        workspace.close()
        return workspace

    workspace = asyncio.run(scenario())

    stored = repository.get_all()
    assert len(stored) == 1
    assert stored[0].id == workspace.project_id
    assert stored[0].script_text == "It began on a quiet night."

    async def reload():
        fresh = ProjectWorkspace(repository, autosave_delay_seconds=DELAY)
        assert fresh.load_project(workspace.project_id) is True
        # Loading must not schedule a save
        assert fresh.scheduler.state is AutosaveState.IDLE
        fresh.close()
        return fresh

    fresh = asyncio.run(reload())

    assert project_to_dict(fresh.project) == project_to_dict(stored[0])


def test_empty_project_is_not_autosaved(repository):
    async def scenario():
        workspace = ProjectWorkspace(repository, autosave_delay_seconds=DELAY)
        workspace.update(name="Only a name")
        await asyncio.sleep(DELAY * 3)
        workspace.close()

    asyncio.run(scenario())

    assert repository.get_all() == []


def test_unchanged_update_does_not_schedule(repository):
    async def scenario():
        workspace = ProjectWorkspace(repository, autosave_delay_seconds=10.0)
        workspace.update(script_text="")
        state = workspace.scheduler.state
        workspace.close()
        return state

    assert asyncio.run(scenario()) is AutosaveState.IDLE


def test_later_script_edit_lands_on_the_created_project(repository):
    script = " ".join(["word"] * 1500)

    async def scenario():
        workspace = ProjectWorkspace(repository, autosave_delay_seconds=DELAY)
        workspace.update(
            name="The Lakeside Case",
            research_data=ResearchData(case_name="Lakeside", summary="Cold case"),
            current_phase=1,
        )
        await asyncio.sleep(DELAY * 3)
        created_id = workspace.project_id
        assert created_id is not None
        workspace.update(script_text=script)
        await asyncio.sleep(DELAY * 3)
        workspace.close()
        return created_id

    created_id = asyncio.run(scenario())

    stored = repository.get_all()
    assert [p.id for p in stored] == [created_id]
    assert stored[0].script_text == script
    assert stored[0].current_phase == 1
    assert stored[0].research_data.case_name == "Lakeside"


def test_update_outside_event_loop_leaves_project_unchanged(repository):
    workspace = ProjectWorkspace(repository, autosave_delay_seconds=DELAY)

    with pytest.raises(RuntimeError):
        workspace.update(script_text="Lost edit")

    assert workspace.project.script_text == ""
    assert workspace.scheduler.state is AutosaveState.IDLE


def test_create_new_project_flushes_pending_save(repository):
    async def scenario():
        workspace = ProjectWorkspace(repository, autosave_delay_seconds=10.0)
        workspace.update(script_text="Draft narration")
        assert workspace.scheduler.state is AutosaveState.PENDING
        workspace.create_new_project()
        workspace.close()
        return workspace

    workspace = asyncio.run(scenario())

    assert [p.script_text for p in repository.get_all()] == ["Draft narration"]
    assert workspace.project_id is None
    assert workspace.project.name == DEFAULT_PROJECT_NAME


def test_delete_current_project_resets_workspace(repository):
    async def scenario():
        workspace = ProjectWorkspace(repository, autosave_delay_seconds=10.0)
        workspace.update(script_text="To be deleted")
        saved = workspace.save_current()
        assert workspace.last_save_ok is True
        assert await workspace.delete_project(saved.id) is True
        workspace.close()
        return workspace

    workspace = asyncio.run(scenario())

    assert repository.get_all() == []
    assert workspace.project_id is None


def test_unknown_slice_is_rejected(repository):
    workspace = ProjectWorkspace(repository)

    with pytest.raises(AttributeError):
        workspace.update(created_at=None)


def test_load_missing_project(repository):
    workspace = ProjectWorkspace(repository)

    assert workspace.load_project("project-404") is False
    assert workspace.list_projects() == []


def test_debounce_defaults_to_settings(repository):
    workspace = ProjectWorkspace(repository)

    assert workspace.scheduler.delay_seconds == get_settings().autosave_debounce_seconds


def test_generated_media_is_offloaded_and_released_on_delete(repository):
    gateway = MemoryGateway()

    async def scenario():
        client = make_pipeline()
        workspace = ProjectWorkspace(repository, autosave_delay_seconds=10.0, offloader=MediaOffloader(gateway))
        try:
            workspace.update(name="Lakeside", script_text="It began on a quiet night.")
            assert await workspace.generate_storyboard(client) is True
            assert await workspace.generate_voiceover(client, voice_style="mysterious") is True
            saved = workspace.save_current()
            uploaded = sorted(gateway.objects)
            deleted = await workspace.delete_project(saved.id)
            return saved, uploaded, deleted
        finally:
            workspace.close()
            await client.aclose()

    saved, uploaded, deleted = asyncio.run(scenario())

    scene = saved.storyboard_data.scenes[0]
    assert scene.preview_image.startswith("https://cdn.example/")
    assert scene.preview_image_path in uploaded
    assert saved.voiceover_data.audio_data is None
    assert saved.voiceover_data.audio_path in uploaded
    assert saved.voiceover_data.voice_style == "mysterious"
    assert saved.voiceover_data.duration == 42.0
    assert deleted is True
    assert gateway.objects == {}
    assert repository.get_all() == []


def test_generation_without_offloader_keeps_media_inline(repository):
    async def scenario():
        client = make_pipeline()
        workspace = ProjectWorkspace(repository, autosave_delay_seconds=10.0)
        try:
            workspace.update(script_text="Narration")
            assert await workspace.generate_voiceover(client) is True
            return workspace.snapshot()
        finally:
            workspace.close()
            await client.aclose()

    project = asyncio.run(scenario())

    assert project.voiceover_data.audio_data == AUDIO
    assert project.voiceover_data.audio_url is None
