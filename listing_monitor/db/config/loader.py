import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger


@dataclass
class RequestConfig:
    """Request configuration for an exchange"""
    api_url: str
    method: str = "get"
    header_profile: str = "browser"
    proxy_pool: Optional[str] = None
    timeout: float = 10.0
    attempts: int = 3
    headers_override: Dict[str, str] = field(default_factory=dict)
    kwargs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MonitoringConfig:
    """Per-poll limits"""
    max_items: int = 10


@dataclass
class ExchangeConfig:
    """Configuration for a single exchange"""
    name: str
    enabled: bool
    request: RequestConfig
    monitoring: MonitoringConfig

    # Resolved configurations
    headers: Dict[str, str] = field(default_factory=dict)
    proxies: List[str] = field(default_factory=list)

    @property
    def api_url(self) -> str:
        return self.request.api_url

    @property
    def has_proxy(self) -> bool:
        return bool(self.proxies)


@dataclass
class TelegramConfig:
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""


@dataclass
class WebhookConfig:
    enabled: bool = False
    url: str = ""


@dataclass
class EmailConfig:
    enabled: bool = False
    api_key: str = ""
    from_address: str = ""
    to_address: str = ""
    api_url: str = "https://api.sendgrid.com/v3/mail/send"


@dataclass
class NotificationsConfig:
    """Notification channel toggles and targets"""
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    timeout: float = 20.0


@dataclass
class GeneralConfig:
    """Process-wide settings"""
    poll_interval: float = 30.0
    db_path: str = "listings.db"
    ledger: str = "memory"
    redis_url: str = "redis://localhost:6379"
    use_fakeredis: bool = False
    store_timeout: float = 10.0
    notify_timeout: float = 30.0
    log_dir: str = "logs"
    classifier_keywords: List[str] = field(default_factory=list)
    classifier_exclude_keywords: Optional[List[str]] = None
    reserved_symbols: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeneralConfig':
        redis_cfg = data.get('redis', {}) or {}
        timeouts = data.get('timeouts', {}) or {}
        classifier = data.get('classifier', {}) or {}
        extractor = data.get('extractor', {}) or {}
        logging_cfg = data.get('logging', {}) or {}

        return cls(
            poll_interval=float(data.get('poll_interval', 30)),
            db_path=data.get('db_path', 'listings.db'),
            ledger=data.get('ledger', 'memory'),
            redis_url=os.getenv("REDIS_URL", redis_cfg.get('url', 'redis://localhost:6379')),
            use_fakeredis=bool(redis_cfg.get('use_fake', False)),
            store_timeout=float(timeouts.get('store', 10)),
            notify_timeout=float(timeouts.get('notify', 30)),
            log_dir=logging_cfg.get('dir', 'logs'),
            classifier_keywords=list(classifier.get('keywords') or []),
            classifier_exclude_keywords=classifier.get('exclude_keywords'),
            reserved_symbols=[s.upper() for s in extractor.get('reserved_symbols') or []],
        )


@dataclass
class SharedConfig:
    """Shared configuration resources"""
    headers: Dict[str, Dict[str, str]]
    proxies: Dict[str, Any]


@dataclass
class AppConfig:
    """Main application configuration"""
    exchanges: Dict[str, ExchangeConfig]
    notifications: NotificationsConfig
    general: GeneralConfig
    shared: SharedConfig

    @classmethod
    def load(cls, config_dir: str = "config", env_file: Optional[str] = None) -> 'AppConfig':
        """Load all configuration files; secrets come from the environment"""
        load_dotenv(env_file)
        config_path = Path(config_dir)

        shared = cls._load_shared_configs(config_path)
        defaults = cls._load_yaml(config_path / "exchanges" / "defaults.yaml")
        exchanges = cls._load_exchanges(config_path, defaults, shared)

        notifications = cls._parse_notifications(cls._load_yaml(config_path / "notifications.yaml"))
        general = GeneralConfig.from_dict(cls._load_yaml(config_path / "general.yaml"))

        return cls(
            exchanges=exchanges,
            notifications=notifications,
            general=general,
            shared=shared
        )

    @classmethod
    def _load_shared_configs(cls, config_path: Path) -> SharedConfig:
        shared_dir = config_path / "shared"

        headers_data = cls._load_yaml(shared_dir / "headers.yaml") or {"profiles": {}}
        proxies_data = cls._load_yaml(shared_dir / "proxies.yaml") or {"pools": {}}

        return SharedConfig(
            headers=headers_data.get("profiles", {}) or {},
            proxies=proxies_data.get("pools", {}) or {},
        )

    @classmethod
    def _load_exchanges(cls, config_path: Path, defaults: Dict, shared: SharedConfig) -> Dict[str, ExchangeConfig]:
        exchanges_dir = config_path / "exchanges"
        exchanges = {}

        for yaml_file in sorted(exchanges_dir.glob("*.yaml")):
            if yaml_file.name == "defaults.yaml":
                continue

            exchange_name = yaml_file.stem
            exchange_data = cls._load_yaml(yaml_file)

            if not exchange_data or exchange_name not in exchange_data:
                logger.warning(f"Skipping {yaml_file}: no '{exchange_name}' section")
                continue

            merged_config = cls._merge_configs(defaults.get("defaults", {}), exchange_data[exchange_name])
            exchanges[exchange_name] = cls._parse_exchange_config(exchange_name, merged_config, shared)

        return exchanges

    @classmethod
    def _parse_exchange_config(cls, name: str, config: Dict, shared: SharedConfig) -> ExchangeConfig:
        request_data = config.get("request", {})
        if not request_data.get("api_url"):
            raise ValueError(f"Exchange {name} has no request.api_url")

        request_config = RequestConfig(
            api_url=request_data["api_url"],
            method=request_data.get("method", "get"),
            header_profile=request_data.get("header_profile", "browser"),
            proxy_pool=request_data.get("proxy_pool"),
            timeout=float(request_data.get("timeout", 10)),
            attempts=int(request_data.get("attempts", 3)),
            headers_override=request_data.get("headers_override", {}) or {},
            kwargs=request_data.get("kwargs", {}) or {}
        )

        monitoring_data = config.get("monitoring", {}) or {}
        monitoring_config = MonitoringConfig(max_items=int(monitoring_data.get("max_items", 10)))

        headers = dict(shared.headers.get(request_config.header_profile, {}))
        headers.update(request_config.headers_override)

        proxies = []
        if request_config.proxy_pool in shared.proxies:
            proxies = shared.proxies[request_config.proxy_pool].get("proxies", []) or []

        return ExchangeConfig(
            name=name,
            enabled=bool(config.get("enabled", False)),
            request=request_config,
            monitoring=monitoring_config,
            headers=headers,
            proxies=proxies,
        )

    @staticmethod
    def _parse_notifications(data: Dict) -> NotificationsConfig:
        telegram = data.get("telegram", {}) or {}
        webhook = data.get("webhook", {}) or {}
        email = data.get("email", {}) or {}

        return NotificationsConfig(
            telegram=TelegramConfig(
                enabled=bool(telegram.get("enabled", False)),
                bot_token=os.getenv("TELEGRAM_BOT_TOKEN", telegram.get("bot_token", "")),
                chat_id=str(os.getenv("TELEGRAM_CHAT_ID", telegram.get("chat_id", ""))),
            ),
            webhook=WebhookConfig(
                enabled=bool(webhook.get("enabled", False)),
                url=os.getenv("DISCORD_WEBHOOK_URL", webhook.get("url", "")),
            ),
            email=EmailConfig(
                enabled=bool(email.get("enabled", False)),
                api_key=os.getenv("SENDGRID_API_KEY") or os.getenv("EMAIL_API_KEY") or email.get("api_key", ""),
                from_address=os.getenv("EMAIL_FROM", email.get("from_address", "")),
                to_address=os.getenv("EMAIL_TO", email.get("to_address", "")),
                api_url=email.get("api_url", EmailConfig.api_url),
            ),
            timeout=float(data.get("timeout", 20)),
        )

    @classmethod
    def _merge_configs(cls, defaults: Dict, specific: Dict) -> Dict:
        """Deep merge defaults with specific config"""
        result = copy.deepcopy(defaults)

        for key, value in specific.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = cls._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    @staticmethod
    def _load_yaml(path: Path) -> Dict:
        if not path.exists():
            return {}

        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
