from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class RenderRequest(BaseModel):
    """what to cut from the source video and how to dress it for a platform"""
    video_url: str
    start_time: float
    end_time: float
    platform: str = "tiktok"
    hook: str = ""
    style: Dict[str, Any] = Field(default_factory=dict)
    callback_url: Optional[str] = None

    @property
    def length(self) -> float:
        return self.end_time - self.start_time


PLATFORM_SETTINGS = {
    "tiktok": {"resolution": "hd", "aspectRatio": "9:16", "size": {"width": 1080, "height": 1920}},
    "instagram": {"resolution": "hd", "aspectRatio": "9:16", "size": {"width": 1080, "height": 1920}},
    "youtube": {"resolution": "hd", "aspectRatio": "9:16", "size": {"width": 1080, "height": 1920}},  # shorts
    "twitter": {"resolution": "hd", "aspectRatio": "16:9", "size": {"width": 1280, "height": 720}},
}

PLATFORM_HASHTAGS = {
    "tiktok": "#viral #fyp #trending #foryou",
    "instagram": "#viral #reels #trending #explore",
    "youtube": "#shorts #viral #trending",
    "twitter": "#viral #trending #video",
}

HOOK_SECONDS = 3
HASHTAG_SECONDS = 2


def get_platform_settings(platform: str) -> dict:
    return PLATFORM_SETTINGS.get(platform, PLATFORM_SETTINGS["tiktok"])


def get_hashtags(platform: str) -> str:
    return PLATFORM_HASHTAGS.get(platform, PLATFORM_HASHTAGS["tiktok"])


def build_edit(request: RenderRequest) -> dict:
    """declarative edit document for POST /render"""
    length = request.length
    platform_settings = get_platform_settings(request.platform)

    tracks = [
        {
            "clips": [
                {
                    "asset": {
                        "type": "video",
                        "src": request.video_url,
                        "trim": request.start_time,
                        "volume": 1,
                    },
                    "start": 0,
                    "length": length,
                    "effect": request.style.get("effect", "zoomIn"),
                    "transition": {"in": "fade", "out": "fade"},
                }
            ]
        }
    ]

    # hook text over the first seconds
    if request.hook:
        tracks.append({
            "clips": [
                {
                    "asset": {
                        "type": "title",
                        "text": request.hook,
                        "style": "future",
                        "color": "#ffffff",
                        "size": "large",
                        "background": "rgba(0,0,0,0.7)",
                        "position": "center",
                    },
                    "start": 0,
                    "length": min(HOOK_SECONDS, length),
                    "transition": {"in": "slideUp", "out": "slideDown"},
                }
            ]
        })

    # hashtags over the last seconds
    tag_length = min(HASHTAG_SECONDS, length)
    tracks.append({
        "clips": [
            {
                "asset": {
                    "type": "title",
                    "text": get_hashtags(request.platform),
                    "style": "minimal",
                    "color": "#ffffff",
                    "size": "small",
                    "position": "bottomLeft",
                },
                "start": max(0, length - tag_length),
                "length": tag_length,
                "transition": {"in": "fade", "out": "fade"},
            }
        ]
    })

    edit = {
        "timeline": {
            "background": "#000000",
            "tracks": tracks,
        },
        "output": {
            "format": "mp4",
            "resolution": platform_settings["resolution"],
            "aspectRatio": platform_settings["aspectRatio"],
            "size": platform_settings["size"],
            "fps": 30,
            "scaleTo": "crop",
        },
        "merge": [],
    }
    if request.callback_url:
        edit["callback"] = request.callback_url
    return edit
