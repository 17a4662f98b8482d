# dfir_fat32: a FAT32 parser for digital forensics & incident response
# (c) Maxim Suhanov

__version__ = '1.0.0'
__all__ = [ 'BootSector', 'FAT', 'DirectoryEntries', 'LongName', 'Volume', 'DirectoryTree', 'Extractor' ]
