"""解析策略配置。

本模块将“策略名”与“具体参数”解耦：

- 策略名（name）：调用方在请求中传入的名称，例如 "poll"。
- ResolverProfile：该策略使用的解析器类型以及轮询次数、间隔等参数。

上层只关心策略名，具体次数/间隔由这里结合 settings 集中生成。"""

from dataclasses import dataclass
from typing import Dict, Literal, Mapping

from dust_proxy.domain.exceptions import ValidationError


ResolverKind = Literal["poll", "stream"]


@dataclass(frozen=True)
class ResolverProfile:
    """单个解析策略的配置。"""

    name: str
    kind: ResolverKind
    max_attempts: int = 1
    delay: float = 0.0
    deadline: float = 0.0

    @property
    def worst_case_wait(self) -> float:
        """轮询模式下最坏情况的等待时间（秒）。"""

        if self.kind == "poll":
            return self.max_attempts * self.delay
        return self.deadline


def build_profiles(cfg) -> Mapping[str, ResolverProfile]:
    """根据 settings 生成全部策略。"""

    profiles: Dict[str, ResolverProfile] = {
        "poll": ResolverProfile(
            name="poll",
            kind="poll",
            max_attempts=cfg.poll_max_attempts,
            delay=cfg.poll_delay,
        ),
        # 插件侧请求超时较短时使用（4 × 2s）
        "poll-fast": ResolverProfile(
            name="poll-fast",
            kind="poll",
            max_attempts=cfg.poll_fast_max_attempts,
            delay=cfg.poll_delay,
        ),
        "stream": ResolverProfile(
            name="stream",
            kind="stream",
            deadline=cfg.stream_deadline,
        ),
    }
    return profiles


def get_profile(name: str, cfg) -> ResolverProfile:
    """根据名称获取 ResolverProfile，名称不区分大小写。"""

    key = name.strip().lower()
    profiles = build_profiles(cfg)
    for k, profile in profiles.items():
        if k.lower() == key:
            return profile
    raise ValidationError(
        code="UNKNOWN_STRATEGY",
        message=f"Unknown strategy: {name!r} (expected one of {', '.join(profiles)})",
    )
