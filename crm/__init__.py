"""
CRM Assistant.

- backend/: REST API, database models, services, assistant, scheduled tasks
- telegram/: Telegram bot integration (aiogram v3) driving the assistant
"""
