"""Video Renderer - draws compositor frames with Pillow and encodes them with MoviePy."""

import base64
import io
import math
import tempfile
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np
from moviepy.audio.fx.all import audio_fadein, audio_fadeout
from moviepy.editor import AudioFileClip, CompositeAudioClip, VideoClip
from PIL import Image, ImageDraw, ImageFont

from reelforge.core.config import Settings
from reelforge.models.schemas import CompositorScene, FrameComposition, FrameLayer, RenderPlan, SubtitleCue
from reelforge.services.timeline_compositor import TimelineCompositor

AUDIO_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
}

# Narration fades in and out over this many seconds
NARRATION_FADE_SECONDS = 0.3

FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "DejaVuSans-Bold.ttf",
)


def _load_font(size: int) -> Any:
    for candidate in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    return ImageFont.load_default()


def cover_fit(image: Image.Image, width: int, height: int) -> Image.Image:
    """Resize and centre-crop image so it fills width x height."""
    scale = max(width / image.width, height / image.height)
    resized = image.resize(
        (max(1, math.ceil(image.width * scale)), max(1, math.ceil(image.height * scale))),
        Image.Resampling.LANCZOS,
    )
    left = (resized.width - width) // 2
    top = (resized.height - height) // 2
    return resized.crop((left, top, left + width, top + height))


class FrameRenderer:
    """Deterministic frame → pixels for one render plan."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        plan: RenderPlan,
        scenes: Sequence[CompositorScene],
        compositor: Optional[TimelineCompositor] = None,
    ):
        """
        Initialize frame renderer.

        Args:
            settings: Application settings (video_width, video_height)
            logger: Logger instance
            plan: Render plan from TimelineCompositor.build_render_plan()
            scenes: Scenes the plan was built from
            compositor: Compositor used to resolve frames (created if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.plan = plan
        self.scenes = list(scenes)
        self.compositor = compositor or TimelineCompositor(settings, logger)
        self.width = settings.video_width
        self.height = settings.video_height
        self.font = _load_font(round(self.height * 0.06))

        # Decoded once; every frame reuses the cover-fitted base image
        self._images: dict[str, Image.Image] = {}
        for scene in self.scenes:
            raw = Image.open(io.BytesIO(base64.b64decode(scene.image.data))).convert("RGBA")
            self._images[scene.id] = cover_fit(raw, self.width, self.height)

    @property
    def total_frames(self) -> int:
        return self.plan.total_frames

    def compose(self, frame: int) -> FrameComposition:
        return self.compositor.compose_frame(self.plan, self.scenes, frame)

    def render_frame(self, frame: int) -> np.ndarray:
        """
        Pixels of one frame.

        Args:
            frame: Global frame number

        Returns:
            uint8 array of shape (height, width, 3)
        """
        composition = self.compose(frame)
        canvas = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 255))

        for layer in composition.layers:
            if layer.opacity <= 0:
                continue
            self._draw_layer(canvas, layer)

        if composition.subtitle:
            self._draw_subtitle(canvas, composition.subtitle)

        return np.asarray(canvas.convert("RGB"), dtype=np.uint8)

    def _draw_layer(self, canvas: Image.Image, layer: FrameLayer) -> None:
        base = self._images[layer.scene_id]
        transform = layer.transform

        scaled_width = max(1, round(self.width * transform.scale))
        scaled_height = max(1, round(self.height * transform.scale))
        image = base if (scaled_width, scaled_height) == base.size else base.resize(
            (scaled_width, scaled_height), Image.Resampling.BILINEAR
        )

        # Translation is a percentage of the scaled layer, applied about the centre
        center_x = self.width / 2 + transform.translate_x_percent / 100 * scaled_width
        center_y = self.height / 2 + transform.translate_y_percent / 100 * scaled_height
        left = round(center_x - scaled_width / 2)
        top = round(center_y - scaled_height / 2)

        layer_canvas = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        layer_canvas.paste(image, (left, top))
        if layer.opacity < 1:
            alpha = layer_canvas.getchannel("A").point(lambda value: round(value * layer.opacity))
            layer_canvas.putalpha(alpha)
        canvas.alpha_composite(layer_canvas)

    def _wrap(self, draw: ImageDraw.ImageDraw, text: str, max_width: float) -> list[str]:
        lines: list[str] = []
        current = ""
        for word in text.split(" "):
            candidate = f"{current} {word}" if current else word
            if draw.textlength(candidate, font=self.font) <= max_width:
                current = candidate
                continue
            if current:
                lines.append(current)
            # Break overlong words (or scripts without spaces) character by character
            current = ""
            for char in word:
                if current and draw.textlength(current + char, font=self.font) > max_width:
                    lines.append(current)
                    current = ""
                current += char
        if current:
            lines.append(current)
        return lines

    def _draw_subtitle(self, canvas: Image.Image, cue: SubtitleCue) -> None:
        overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)

        lines = self._wrap(draw, cue.text, self.width * 0.9)
        if not lines:
            return

        line_height = round(self.font.size * 1.5) if hasattr(self.font, "size") else 16
        text_width = max(draw.textlength(line, font=self.font) for line in lines)
        box_height = line_height * len(lines) + 40
        box_width = text_width + 72
        bottom = self.height * 0.92
        box = (
            (self.width - box_width) / 2,
            bottom - box_height,
            (self.width + box_width) / 2,
            bottom,
        )
        draw.rounded_rectangle(box, radius=16, fill=(0, 0, 0, round(255 * 0.75 * cue.opacity)))

        y = box[1] + 20
        text_alpha = round(255 * cue.opacity)
        for line in lines:
            x = (self.width - draw.textlength(line, font=self.font)) / 2
            draw.text((x + 2, y + 2), line, font=self.font, fill=(0, 0, 0, round(text_alpha * 0.9)))
            draw.text((x, y), line, font=self.font, fill=(255, 255, 255, text_alpha))
            y += line_height

        canvas.alpha_composite(overlay)

    def render_video(self, output_path: Path) -> Path:
        """
        Encode every frame plus per-scene narration to an mp4.

        Args:
            output_path: Destination file

        Returns:
            Path to the written video
        """
        fps = self.plan.fps
        duration = self.total_frames / fps
        if self.total_frames == 0:
            raise ValueError("Render plan has no frames")

        self.logger.info("=" * 60)
        self.logger.info(f"Rendering {self.total_frames} frames ({duration:.2f}s) to {output_path}")
        self.logger.info("=" * 60)

        def make_frame(t: float) -> np.ndarray:
            return self.render_frame(min(self.total_frames - 1, int(t * fps + 1e-6)))

        video = VideoClip(make_frame, duration=duration)
        audio_clips = []
        composite_audio = None

        with tempfile.TemporaryDirectory() as audio_dir:
            try:
                for scene, entry in zip(self.scenes, self.plan.entries):
                    if not scene.narration_audio:
                        continue
                    extension = AUDIO_EXTENSIONS.get(scene.narration_audio.mime_type, "wav")
                    audio_path = Path(audio_dir) / f"{scene.id}.{extension}"
                    audio_path.write_bytes(base64.b64decode(scene.narration_audio.data))
                    clip = AudioFileClip(str(audio_path))
                    # Narration never spills into the next scene
                    scene_seconds = entry.duration_in_frames / fps
                    if clip.duration > scene_seconds:
                        clip = clip.subclip(0, scene_seconds)
                    fade = min(NARRATION_FADE_SECONDS, clip.duration / 2)
                    clip = clip.fx(audio_fadein, fade).fx(audio_fadeout, fade)
                    audio_clips.append(clip.set_start(entry.start_frame / fps))

                if audio_clips:
                    composite_audio = CompositeAudioClip(audio_clips).set_duration(duration)
                    video = video.set_audio(composite_audio)

                output_path.parent.mkdir(parents=True, exist_ok=True)
                video.write_videofile(
                    str(output_path),
                    codec="libx264",
                    audio_codec="aac",
                    fps=fps,
                    preset="medium",
                    bitrate="8000k",
                    logger=None,  # Suppress MoviePy verbose logging
                )
            finally:
                if composite_audio is not None:
                    composite_audio.close()
                for clip in audio_clips:
                    clip.close()
                video.close()

        self.logger.info(f"✅ Video written: {output_path}")
        return output_path
