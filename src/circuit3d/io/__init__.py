"""File formats: STL, OBJ/MTL, the binary glTF container and glTF export."""
