"""Tests for the subcommand dispatcher and CLI entry points."""

import pytest
import yaml
from moviepy import VideoFileClip


class TestMainDispatcher:
    def test_no_subcommand_shows_help(self, capsys):
        from clipsplice.main import main

        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code != 0  # should error without subcommand

    def test_render_subcommand_exists(self):
        """Verify render is registered (will fail on missing --script)."""
        from clipsplice.main import main

        with pytest.raises(SystemExit):
            main(["render"])

    def test_info_subcommand_exists(self):
        from clipsplice.main import main

        with pytest.raises(SystemExit):
            main(["info"])

    def test_invalid_subcommand_errors(self, capsys):
        from clipsplice.main import main

        with pytest.raises(SystemExit) as exc_info:
            main(["nonexistent"])
        assert exc_info.value.code != 0


class TestInfo:
    def test_prints_summary(self, source_video, capsys):
        from clipsplice.main import main

        main(["info", str(source_video)])
        out = capsys.readouterr().out
        assert "Duration: 00:10" in out
        assert "Size:     320x240" in out
        assert "FPS:      10" in out
        assert "Audio:    yes" in out


def _write_yaml(path, content):
    path.write_text(yaml.dump(content))
    return str(path)


class TestRender:
    @pytest.fixture
    def script(self, source_video, tmp_path):
        return _write_yaml(tmp_path / "edit.yaml", {
            "paths": {"media": str(source_video.parent)},
            "video": "${media}/source.mp4",
            "commands": [
                {"split": {"track": "video", "at": 4}},
                {"remove": {"track": "video", "segment": "segment-1"}},
                {"overlay": {"text": "Tail", "x": 10, "y": 10}},
            ],
            "export": {"start": 4, "end": 10},
        })

    @pytest.fixture
    def config(self, tmp_path):
        return _write_yaml(tmp_path / "settings.yaml", {
            "export": {
                "codec": "libx264", "container": "mp4",
                "ffmpeg_params": ["-preset", "ultrafast"],
            },
        })

    def test_validate_only(self, script, capsys):
        from clipsplice.main import main

        main(["render", "--script", script, "--validate"])
        out = capsys.readouterr().out
        assert "Script valid: 3 commands" in out
        assert "All paths verified." in out

    def test_output_required(self, script):
        from clipsplice.main import main

        with pytest.raises(SystemExit):
            main(["render", "--script", script])

    def test_render_to_file(self, script, config, tmp_path, capsys):
        from clipsplice.main import main

        out = tmp_path / "out" / "tail.mp4"
        main(["render", "--script", script, "--config", config, "--output", str(out)])
        assert out.exists()
        with VideoFileClip(str(out)) as clip:
            assert 5.5 < clip.duration < 6.5
        printed = capsys.readouterr().out
        assert "START" in printed and "DONE" in printed
        assert f"Writing to: {out}" in printed

    def test_render_into_directory(self, script, config, tmp_path):
        from clipsplice.render_cli import render

        out_dir = tmp_path / "renders"
        out_dir.mkdir()
        result = render(script, str(out_dir), settings_path=config)
        assert (out_dir / "trimmed-video.mp4").exists()
        assert result.frame_count == 60
