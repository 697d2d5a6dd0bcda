"""
Jobs executados por agendador externo (cron, Kubernetes CronJob...).
"""
