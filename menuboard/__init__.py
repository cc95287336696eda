"""
Backend package for the daily menu service.

Hotels sign in with their phone number, publish one menu photo per day and
subscribers get a web-push notification whenever a menu changes.
"""
