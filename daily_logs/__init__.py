from daily_logs.plugin import TelegramDailyLogsPlugin

__all__ = ["TelegramDailyLogsPlugin"]
