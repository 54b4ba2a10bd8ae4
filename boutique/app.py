# module boutique.app
from boutique.app_setup.factory import create_app

app = create_app()
