"""In-memory release archives for the tests."""

import io
import tarfile
import warnings
import zipfile

# Fixed timestamp so that the same entries always give the same bytes
FIXED_DATE = (2024, 1, 1, 0, 0, 0)


def make_zip(paths, contents=None) -> bytes:
    """Build a zip archive. Duplicate names are allowed on purpose."""
    buffer = io.BytesIO()
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        with zipfile.ZipFile(buffer, "w") as archive:
            for index, path in enumerate(paths):
                data = contents[index] if contents else f"content of {path}".encode()
                archive.writestr(zipfile.ZipInfo(path, date_time=FIXED_DATE), data)
    return buffer.getvalue()


def make_tar(paths, compression="gz") -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=f"w:{compression}") as archive:
        for path in paths:
            data = f"content of {path}".encode()
            info = tarfile.TarInfo(path)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()
