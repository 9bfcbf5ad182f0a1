from . import crud_home_size_dispute
