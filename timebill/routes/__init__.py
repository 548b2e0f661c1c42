# timebill/routes/__init__.py
