"""Image service for photo, signature and drawing capture."""
import io
import logging

from PIL import Image, ImageDraw

from shared.utils import normalize_image, CorruptedImageError


class CameraUnavailableError(Exception):
    """Raised when the camera cannot be opened (no device, permission denied)."""
    pass


class ImageService:
    """Turns captured images into data URIs ready to store in a form state.

    Photos are normalized to JPEG, drawings and signatures to PNG; both are
    downscaled so their longest edge fits ``max_dimension``.

    A camera is any object with ``start()``, ``read_frame() -> bytes`` and
    ``stop()``.
    """

    def __init__(self, max_dimension=1600, quality=80, stroke_width=3):
        self.max_dimension = max_dimension
        self.quality = quality
        self.stroke_width = stroke_width
        self.logger = logging.getLogger(self.__class__.__name__)

    def capture_from_file(self, path):
        """Read an image file chosen by the user."""
        data_uri = normalize_image(image_path=str(path), max_size=self.max_dimension, quality=self.quality)
        self.logger.info(f"Captured photo from file {path}")
        return data_uri

    def capture_from_bytes(self, image_data):
        if not image_data:
            raise CorruptedImageError("No image data received")
        return normalize_image(image_data=image_data, max_size=self.max_dimension, quality=self.quality)

    def capture_from_camera(self, camera):
        """Grab one frame; the camera is stopped whatever happens.

        Raises:
            CameraUnavailableError: If the camera cannot be started
        """
        try:
            try:
                camera.start()
            except (PermissionError, OSError) as e:
                raise CameraUnavailableError(f"Camera unavailable: {e}") from e
            frame = camera.read_frame()
        finally:
            camera.stop()
        self.logger.info("Captured photo from camera")
        return self.capture_from_bytes(frame)

    def capture_with_fallback(self, camera, choose_file):
        """Use the camera, or ``choose_file()`` when it is unavailable.

        ``choose_file`` returns a path, or None when the user cancels.
        """
        try:
            return self.capture_from_camera(camera)
        except CameraUnavailableError as e:
            self.logger.warning(f"{e}; falling back to file upload")
        path = choose_file()
        if not path:
            return None
        return self.capture_from_file(path)

    def capture_drawing(self, strokes, size=(600, 300), background='white', color='black'):
        """Render freehand strokes onto a canvas and return a PNG data URI.

        ``strokes`` is a list of strokes, each a list of ``(x, y)`` points in
        canvas coordinates. A stroke with one point is drawn as a dot.
        """
        width, height = size
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid canvas size: {size}")

        canvas = Image.new('RGB', (width, height), background)
        draw = ImageDraw.Draw(canvas)
        radius = max(1, self.stroke_width // 2)
        for stroke in strokes:
            points = [(float(x), float(y)) for x, y in stroke]
            if len(points) == 1:
                x, y = points[0]
                draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=color)
            elif points:
                draw.line(points, fill=color, width=self.stroke_width, joint='curve')

        buffer = io.BytesIO()
        canvas.save(buffer, format='PNG')
        return normalize_image(image_data=buffer.getvalue(), max_size=self.max_dimension, output_format='PNG')

    @staticmethod
    def is_blank(strokes):
        return not any(strokes)
