"""Load settings.yaml into typed dataclasses."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class GatewayConfig:
    base_url: str
    api_key_env: str
    credential_header: str
    model_suffix: str
    temperature: float
    max_tokens: int
    judge_temperature: float
    judge_max_tokens: int
    timeout_sec: int
    referer: str | None = None
    title: str | None = None


@dataclass
class DebateConfig:
    max_rounds: int = 3
    max_vote_rounds: int = 5
    fallback_model: str = "mistralai/mistral-7b-instruct"
    placeholder: str = "Thinking..."


@dataclass
class JudgeConfig:
    lenient: bool = True


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class PromptsConfig:
    initial: str
    first_round: str
    later_round: str
    judge: str
    summarize: str
    propose: str
    vote: str
    emergency: str
    lenient_clause: str = ""


@dataclass
class AppConfig:
    gateway: GatewayConfig
    debate: DebateConfig
    judge: JudgeConfig
    server: ServerConfig
    prompts: PromptsConfig

    def env_credential(self) -> str | None:
        """Return the process-wide credential, or None when it is not set."""
        value = os.environ.get(self.gateway.api_key_env, "").strip()
        return value or None


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing. Optional sections
    (debate, judge, server) fall back to dataclass defaults.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    gateway_raw = raw["gateway"]
    gateway = GatewayConfig(
        base_url=str(gateway_raw["base_url"]),
        api_key_env=str(gateway_raw["api_key_env"]),
        credential_header=str(gateway_raw.get("credential_header", "x-openrouter-key")),
        model_suffix=str(gateway_raw.get("model_suffix", "")),
        temperature=float(gateway_raw["temperature"]),
        max_tokens=int(gateway_raw["max_tokens"]),
        judge_temperature=float(gateway_raw.get("judge_temperature", gateway_raw["temperature"])),
        judge_max_tokens=int(gateway_raw.get("judge_max_tokens", gateway_raw["max_tokens"])),
        timeout_sec=int(gateway_raw["timeout_sec"]),
        referer=gateway_raw.get("referer"),
        title=gateway_raw.get("title"),
    )

    debate_raw = raw.get("debate", {})
    debate = DebateConfig(**{k: v for k, v in debate_raw.items() if v is not None})
    if debate.max_rounds < 1 or debate.max_vote_rounds < 1:
        raise ValueError("debate.max_rounds and debate.max_vote_rounds must be >= 1")

    judge = JudgeConfig(lenient=bool(raw.get("judge", {}).get("lenient", True)))

    server_raw = raw.get("server", {})
    server = ServerConfig(
        host=str(server_raw.get("host", "127.0.0.1")),
        port=int(server_raw.get("port", 8000)),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        initial=prompts_raw["initial"],
        first_round=prompts_raw["first_round"],
        later_round=prompts_raw["later_round"],
        judge=prompts_raw["judge"],
        summarize=prompts_raw["summarize"],
        propose=prompts_raw["propose"],
        vote=prompts_raw["vote"],
        emergency=prompts_raw["emergency"],
        lenient_clause=prompts_raw.get("lenient_clause", ""),
    )

    if os.environ.get(gateway.api_key_env, "").strip():
        logger.info("Process-wide credential available from %s", gateway.api_key_env)
    else:
        logger.info(
            "No process-wide credential — set %s in .env or send the %s header",
            gateway.api_key_env,
            gateway.credential_header,
        )

    return AppConfig(
        gateway=gateway,
        debate=debate,
        judge=judge,
        server=server,
        prompts=prompts,
    )
