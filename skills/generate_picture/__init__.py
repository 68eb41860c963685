"""Practice picture generation with Imagen."""
from .generate_picture import PictureGenerator, PracticePicture

__all__ = ["PictureGenerator", "PracticePicture"]
