from dicetel_api.main import create_app as create_app
