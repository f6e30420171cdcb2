import os
from typing import Dict, Any
from dataclasses import dataclass

from dotenv import load_dotenv

from seoulmate_scraper.utils.validation import validate_url

# Load environment variables from .env file
load_dotenv()

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)

DEFAULT_SECRET_KEY = 'dev-secret-key-change-in-production'


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('true', '1', 'yes')


@dataclass
class ScraperConfig:
    """Configuration for the browser scraping pipeline"""
    base_url: str = "https://korean.visitseoul.net"
    max_attempts: int = 2
    retry_delay_seconds: float = 5
    headless: bool = True
    launch_timeout_ms: int = 300000
    slow_mo_ms: int = 50
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1920
    viewport_height: int = 1080
    page_timeout_ms: int = 120000
    detail_timeout_ms: int = 60000
    network_idle_timeout_ms: int = 60000
    max_pages_per_category: int = 5
    request_delay_ms: int = 200
    category_pause_ms: int = 2000
    use_fallback_attractions: bool = True


@dataclass
class SchedulerConfig:
    """Configuration for the periodic scrape trigger"""
    enabled: bool = False
    initial_run_enabled: bool = False
    interval_hours: float = 168


@dataclass
class AppConfig:
    """Main application configuration"""
    secret_key: str
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: str = "*"


class ConfigManager:
    """Centralized configuration management"""

    def __init__(self):
        self._scraper_config = None
        self._scheduler_config = None
        self._app_config = None

    @property
    def scraper(self) -> ScraperConfig:
        """Get scraper configuration"""
        if self._scraper_config is None:
            self._scraper_config = ScraperConfig(
                base_url=os.getenv('SCRAPER_BASE_URL', 'https://korean.visitseoul.net').rstrip('/'),
                max_attempts=int(os.getenv('SCRAPER_MAX_ATTEMPTS', '2')),
                retry_delay_seconds=float(os.getenv('SCRAPER_RETRY_DELAY_SECONDS', '5')),
                headless=_env_bool('SCRAPER_HEADLESS', 'true'),
                launch_timeout_ms=int(os.getenv('SCRAPER_LAUNCH_TIMEOUT_MS', '300000')),
                slow_mo_ms=int(os.getenv('SCRAPER_SLOW_MO_MS', '50')),
                user_agent=os.getenv('SCRAPER_USER_AGENT', DEFAULT_USER_AGENT),
                viewport_width=int(os.getenv('SCRAPER_VIEWPORT_WIDTH', '1920')),
                viewport_height=int(os.getenv('SCRAPER_VIEWPORT_HEIGHT', '1080')),
                page_timeout_ms=int(os.getenv('SCRAPER_PAGE_TIMEOUT_MS', '120000')),
                detail_timeout_ms=int(os.getenv('SCRAPER_DETAIL_TIMEOUT_MS', '60000')),
                network_idle_timeout_ms=int(os.getenv('SCRAPER_NETWORK_IDLE_TIMEOUT_MS', '60000')),
                max_pages_per_category=int(os.getenv('SCRAPER_MAX_PAGES_PER_CATEGORY', '5')),
                request_delay_ms=int(os.getenv('SCRAPER_REQUEST_DELAY_MS', '200')),
                category_pause_ms=int(os.getenv('SCRAPER_CATEGORY_PAUSE_MS', '2000')),
                use_fallback_attractions=_env_bool('SCRAPER_USE_FALLBACK_ATTRACTIONS', 'true'),
            )
        return self._scraper_config

    @property
    def scheduler(self) -> SchedulerConfig:
        """Get scheduler configuration"""
        if self._scheduler_config is None:
            self._scheduler_config = SchedulerConfig(
                enabled=_env_bool('SCRAPER_SCHEDULER_ENABLED', 'false'),
                initial_run_enabled=_env_bool('SCRAPER_INITIAL_ENABLED', 'false'),
                interval_hours=float(os.getenv('SCRAPER_SCHEDULER_INTERVAL_HOURS', '168')),
            )
        return self._scheduler_config

    @property
    def app(self) -> AppConfig:
        """Get application configuration"""
        if self._app_config is None:
            self._app_config = AppConfig(
                secret_key=os.getenv('SECRET_KEY', DEFAULT_SECRET_KEY),
                debug=_env_bool('DEBUG', 'false'),
                host=os.getenv('HOST', '0.0.0.0'),
                port=int(os.getenv('PORT', '5000')),
                cors_origins=os.getenv('CORS_ORIGINS', '*')
            )
        return self._app_config

    def validate_config(self) -> Dict[str, Any]:
        """Validate configuration and return any issues"""
        issues = []

        base_url_ok, base_url_error = validate_url(self.scraper.base_url)
        if not base_url_ok:
            issues.append(f"SCRAPER_BASE_URL is invalid: {base_url_error}")

        if self.scraper.max_attempts < 1:
            issues.append("SCRAPER_MAX_ATTEMPTS must be at least 1")

        if self.scraper.retry_delay_seconds < 0:
            issues.append("SCRAPER_RETRY_DELAY_SECONDS must not be negative")

        if self.scheduler.interval_hours <= 0:
            issues.append("SCRAPER_SCHEDULER_INTERVAL_HOURS must be positive")

        if self.app.secret_key == DEFAULT_SECRET_KEY and not self.app.debug:
            issues.append("SECRET_KEY should be changed in production")

        return {
            'valid': len(issues) == 0,
            'issues': issues,
            'config_summary': {
                'scraper': {
                    'base_url': self.scraper.base_url,
                    'max_attempts': self.scraper.max_attempts,
                    'retry_delay_seconds': self.scraper.retry_delay_seconds,
                    'headless': self.scraper.headless,
                    'max_pages_per_category': self.scraper.max_pages_per_category
                },
                'scheduler': {
                    'enabled': self.scheduler.enabled,
                    'initial_run_enabled': self.scheduler.initial_run_enabled,
                    'interval_hours': self.scheduler.interval_hours
                },
                'app': {
                    'debug': self.app.debug,
                    'host': self.app.host,
                    'port': self.app.port
                }
            }
        }


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """Get the global configuration instance"""
    return config


def reset_config() -> ConfigManager:
    """Drop cached sections so the next access re-reads the environment"""
    global config
    config = ConfigManager()
    return config
